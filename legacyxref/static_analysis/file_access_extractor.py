"""File Access Extractor

Two passes over the program:
1. SELECT handle ASSIGN TO name declares each file handle
2. OPEN/READ/WRITE/REWRITE/DELETE/CLOSE statements are attributed to
   the handles; an explicit OPEN mode overrides the declared default
"""

import re
from typing import Dict, List
import logging

from legacyxref.source import SourceUnit
from .cobol_parser import is_comment_line
from .models import FileAccessFact
from .naming import FILE_MEANING

logger = logging.getLogger(__name__)


class FileAccessExtractor:
    """Extract file handles, their access modes and operations"""

    OPEN_MODES = ("INPUT", "OUTPUT", "I-O", "EXTEND")

    def __init__(self):
        self.select_pattern = re.compile(
            r'SELECT\s+([A-Z0-9\-]+)\s+ASSIGN\s+TO\s+[\'"]?([A-Z0-9\-\.]+)'
        )
        self.open_pattern = re.compile(r'\bOPEN\s+(.+)')

    def extract(self, source: SourceUnit) -> List[FileAccessFact]:
        """
        Extract file access facts.

        Args:
            source: Program source

        Returns:
            One FileAccessFact per declared handle, in declaration order
        """
        files: Dict[str, FileAccessFact] = {}

        for i, line in enumerate(source.upper_lines):
            if is_comment_line(line):
                continue
            match = self.select_pattern.search(line)
            if match and match.group(1) not in files:
                handle = match.group(1)
                files[handle] = FileAccessFact(
                    handle=handle,
                    # A trailing period ends the sentence, not the name
                    external_name=match.group(2).rstrip('.'),
                    line_number=i + 1,
                    business_meaning=FILE_MEANING.evaluate(handle),
                )

        if not files:
            return []

        op_patterns = {handle: self._operation_patterns(handle) for handle in files}

        for line in source.upper_lines:
            if is_comment_line(line):
                continue
            self._apply_open_modes(line, files)
            for handle, patterns in op_patterns.items():
                fact = files[handle]
                for operation, pattern in patterns:
                    if operation not in fact.operations and pattern.search(line):
                        fact.operations.append(operation)

        logger.info(f"Found {len(files)} file handles in {source.name}")
        return list(files.values())

    def _apply_open_modes(self, line: str, files: Dict[str, FileAccessFact]) -> None:
        # OPEN INPUT A-FILE B-FILE OUTPUT C-FILE; later OPEN statements win
        match = self.open_pattern.search(line)
        if not match:
            return
        mode = None
        for token in match.group(1).replace('.', ' ').split():
            if token in self.OPEN_MODES:
                mode = token
            elif mode and token in files:
                files[token].access_mode = mode
            else:
                break

    @staticmethod
    def _operation_patterns(handle: str):
        name = re.escape(handle)
        # Word boundaries must not split hyphenated names
        var = rf'(?<![A-Z0-9\-]){name}(?![A-Z0-9\-])'
        return [
            ("OPEN", re.compile(rf'\bOPEN\b.*{var}')),
            ("READ", re.compile(rf'\bREAD\s+{var}')),
            ("WRITE", re.compile(rf'\bWRITE\s+.*{var}|\bWRITE\b.*FROM.*{var}')),
            ("REWRITE", re.compile(rf'\bREWRITE\s+{var}')),
            ("DELETE", re.compile(rf'\bDELETE\s+{var}')),
            ("CLOSE", re.compile(rf'\bCLOSE\b.*{var}')),
        ]
