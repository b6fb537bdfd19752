"""Dependency Analyzer for COBOL

External CALL targets and the parameters passed to them:
- CALL 'PROGRAM' literal calls
- CALL WS-NAME dynamic calls through a data item
- USING parameter lists (BY REFERENCE/CONTENT/VALUE stripped)
- Middleware vs application category by name prefix
"""

import re
from typing import List
import logging

from legacyxref.rules import Rule, RuleTable
from legacyxref.source import SourceUnit
from .cobol_parser import ParagraphIndex, is_comment_line
from .models import ExternalCall, Paragraph
from .naming import CALLED_PROGRAM_ROLE

logger = logging.getLogger(__name__)

MIDDLEWARE_PREFIXES = ("CICS", "DFH", "CEE", "DSN", "SQL", "MQ", "IMS", "DB2")

CALL_CATEGORY = RuleTable([
    Rule(lambda name: name.startswith(MIDDLEWARE_PREFIXES), "middleware"),
], default="application")


class ExternalCallExtractor:
    """
    Extract CALL statements.

    Literal calls name their target directly. A dynamic call names a data
    item; the item name is kept as the target and the call is flagged so
    the graph builder can type the edge.
    """

    PARAMETER_NOISE = {'BY', 'REFERENCE', 'CONTENT', 'VALUE'}

    def __init__(self):
        self.literal_call_pattern = re.compile(r'(?<![A-Z0-9\-])CALL\s+[\'"]([^\'"]+)[\'"]')
        self.dynamic_call_pattern = re.compile(r'(?<![A-Z0-9\-])CALL\s+([A-Z][A-Z0-9\-]*)')
        self.using_pattern = re.compile(r'\bUSING\s+(.*?)(?:\.\s*$|$)')

    def extract(self, source: SourceUnit, paragraphs: List[Paragraph],
                procedure_line: int = 0) -> List[ExternalCall]:
        """
        Extract external calls.

        Args:
            source: Program source
            paragraphs: Paragraphs from the structure parser
            procedure_line: 1-based PROCEDURE DIVISION line (0 scans everything)

        Returns:
            ExternalCall list in source order
        """
        index = ParagraphIndex(paragraphs)
        calls = []

        for i in range(procedure_line, len(source.upper_lines)):
            line = source.upper_lines[i]
            if 'CALL' not in line or is_comment_line(line):
                continue

            literal = self.literal_call_pattern.search(line)
            if literal:
                name, dynamic = literal.group(1).strip(), False
            else:
                match = self.dynamic_call_pattern.search(line)
                if not match:
                    continue
                name, dynamic = match.group(1), True

            calls.append(ExternalCall(
                program_name=name,
                paragraph=index.name_at(i + 1),
                line_number=i + 1,
                parameters=self._extract_call_parameters(line),
                is_dynamic=dynamic,
                assumed_role=CALLED_PROGRAM_ROLE.evaluate(name),
                category=CALL_CATEGORY.evaluate(name),
            ))

        if calls:
            logger.info(f"Found {len(calls)} external calls in {source.name}")
        return calls

    def _extract_call_parameters(self, line: str) -> List[str]:
        using = self.using_pattern.search(line)
        if not using:
            return []
        return [p for p in using.group(1).split()
                if p not in self.PARAMETER_NOISE and ',' not in p]
