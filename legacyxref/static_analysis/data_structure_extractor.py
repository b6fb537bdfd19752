"""Data Structure Extractor for COBOL

Key data items of the DATA DIVISION:
- Level number, PICTURE, VALUE, OCCURS, REDEFINES
- 88-level condition names attached to their parent as flag values
- Only top-level groups (01-05) and items with significant names are kept
"""

import re
from typing import List, Optional
import logging

from legacyxref.source import SourceUnit
from .cobol_parser import is_comment_line
from .models import DataItem
from .naming import DATA_ITEM_MEANING, is_significant_item

logger = logging.getLogger(__name__)


class DataStructureExtractor:
    """Extract significant data items from the DATA DIVISION"""

    def __init__(self):
        self.item_pattern = re.compile(r'^\s*(\d{2})\s+([A-Z0-9\-]+)')
        self.picture_pattern = re.compile(r'PIC(?:TURE)?\s+(?:IS\s+)?([^\s.]+)')
        self.value_pattern = re.compile(
            r'VALUE\s+(?:IS\s+)?([\'"]?[^.\'"\s]+[\'"]?|SPACES?|ZEROS?)'
        )
        self.occurs_pattern = re.compile(r'OCCURS\s+(\d+)')
        self.redefines_pattern = re.compile(r'REDEFINES\s+([A-Z0-9\-]+)')

    def extract(self, source: SourceUnit) -> List[DataItem]:
        """
        Extract key data items.

        Args:
            source: Program source

        Returns:
            DataItem list in declaration order
        """
        items: List[DataItem] = []
        in_data_division = False
        flag_parent: Optional[DataItem] = None

        for i, line in enumerate(source.upper_lines):
            if 'DATA DIVISION' in line:
                in_data_division = True
                continue
            if 'PROCEDURE DIVISION' in line:
                break
            if not in_data_division or is_comment_line(line):
                continue

            match = self.item_pattern.match(line)
            if not match:
                continue

            level = int(match.group(1))
            name = match.group(2)
            if name == 'FILLER':
                continue

            item = self._build_item(name, level, i + 1, line)

            if level == 88:
                # Condition names attach to the nearest preceding kept item
                if flag_parent is not None:
                    flag_parent.flag_values.append({
                        "value": item.value or "",
                        "meaning": name.replace('-', ' ').lower(),
                    })
                    flag_parent.is_flag = True
                continue

            if level <= 5 or is_significant_item(name):
                items.append(item)
                flag_parent = item
            else:
                flag_parent = None

        logger.info(f"Found {len(items)} key data items in {source.name}")
        return items

    def _build_item(self, name: str, level: int, line_number: int, line: str) -> DataItem:
        item = DataItem(
            name=name,
            level=level,
            line_number=line_number,
            is_flag=level == 88,
            business_meaning=DATA_ITEM_MEANING.evaluate(name),
        )

        picture = self.picture_pattern.search(line)
        if picture:
            item.picture = picture.group(1)

        value = self.value_pattern.search(line)
        if value:
            item.value = value.group(1)

        occurs = self.occurs_pattern.search(line)
        if occurs:
            item.occurs = int(occurs.group(1))

        redefines = self.redefines_pattern.search(line)
        if redefines:
            item.redefines = redefines.group(1)

        return item
