"""COBOL Program Structure Parser

Line-oriented scan of one program source into its structural skeleton:
- PROGRAM-ID, division names, COPY statements (file-wide)
- PROCEDURE DIVISION paragraphs and their line ranges
- PERFORM edges between paragraphs (second pass, after all boundaries
  are known so forward references resolve)

This is a pragmatic scanner, not a compiler front end. Anything that does
not look like a recognised shape is skipped without error.
"""

import bisect
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional
import logging

from legacyxref.context import AnalysisContext, Anomaly
from legacyxref.source import SourceUnit
from .models import CopybookRef, Paragraph
from .naming import PARAGRAPH_PURPOSE

logger = logging.getLogger(__name__)

UNKNOWN_PARAGRAPH = "UNKNOWN"


class ParagraphScanState(Enum):
    """Where the paragraph scanner is in the source"""
    BEFORE_PROCEDURE = "before_procedure"
    IN_PROCEDURE = "in_procedure"


@dataclass
class ProgramStructure:
    """Skeleton of one program"""
    program_id: str
    divisions: List[str] = field(default_factory=list)
    paragraphs: List[Paragraph] = field(default_factory=list)
    copybooks: List[CopybookRef] = field(default_factory=list)
    procedure_line: int = 0
    anomalies: List[Anomaly] = field(default_factory=list)


def is_comment_line(line: str) -> bool:
    """Fixed-format indicator comments and free-format *> comments"""
    stripped = line.strip()
    if stripped.startswith('*'):
        return True
    return len(line) > 6 and line[6] in ('*', '/') and not line[:6].strip()


class ParagraphIndex:
    """Maps a 1-based line number to the enclosing paragraph name"""

    def __init__(self, paragraphs: List[Paragraph]):
        self._paragraphs = sorted(paragraphs, key=lambda p: p.line_start)
        self._starts = [p.line_start for p in self._paragraphs]

    def name_at(self, line_number: int) -> str:
        pos = bisect.bisect_right(self._starts, line_number) - 1
        if pos >= 0 and self._paragraphs[pos].contains(line_number):
            return self._paragraphs[pos].name
        return UNKNOWN_PARAGRAPH


class ProgramStructureParser:
    """
    Structural parser for COBOL programs.

    Paragraph boundaries are tracked with an explicit two-state machine:
    nothing is a paragraph header until a PROCEDURE DIVISION line is seen.
    """

    # Words that can sit alone on a line with a period but are not names
    RESERVED_WORDS = {
        'END-IF', 'END-EXEC', 'END-PERFORM', 'END-EVALUATE', 'END-CALL',
        'END-READ', 'END-WRITE', 'END-REWRITE', 'END-DELETE', 'END-START',
        'END-RETURN', 'END-SEARCH', 'END-STRING', 'END-UNSTRING',
        'END-MULTIPLY', 'END-DIVIDE', 'END-ADD', 'END-SUBTRACT',
        'END-COMPUTE', 'END-ACCEPT', 'END-DISPLAY',
        'STOP', 'GOBACK', 'CONTINUE', 'EXIT', 'ELSE', 'WHEN', 'OTHER',
        'NOT', 'AND', 'OR', 'TRUE', 'FALSE', 'ZERO', 'ZEROS', 'ZEROES',
        'SPACE', 'SPACES', 'HIGH-VALUE', 'HIGH-VALUES', 'LOW-VALUE', 'LOW-VALUES',
    }

    def __init__(self):
        self.program_id_pattern = re.compile(r'PROGRAM-ID\.\s*([A-Z0-9\-]+)')
        self.division_pattern = re.compile(
            r'^\s*(IDENTIFICATION|ID|ENVIRONMENT|DATA|PROCEDURE)\s+DIVISION\b'
        )
        self.paragraph_pattern = re.compile(r'^\s{0,7}([A-Z][A-Z0-9\-]+)\.\s*$')
        self.copy_pattern = re.compile(r'\bCOPY\s+[\'"]?([A-Z0-9\-]+)')
        self.perform_pattern = re.compile(
            r'\bPERFORM\s+([A-Z][A-Z0-9\-]+)(?:\s+(?:THRU|THROUGH)\s+([A-Z][A-Z0-9\-]+))?'
        )

    def parse(self, source: SourceUnit, context: Optional[AnalysisContext] = None) -> ProgramStructure:
        """
        Parse program structure.

        Args:
            source: Loaded program source
            context: Run context receiving anomalies

        Returns:
            ProgramStructure with paragraphs and performs resolved
        """
        context = context or AnalysisContext()
        structure = ProgramStructure(program_id=self._extract_program_id(source))

        if source.is_empty:
            return structure

        structure.divisions = self._extract_divisions(source)
        structure.copybooks = self._extract_copybooks(source)
        structure.paragraphs, structure.procedure_line = self._extract_paragraphs(
            source, context, structure.anomalies
        )
        self._link_performs(source, structure.paragraphs)

        logger.info(f"Found {len(structure.paragraphs)} paragraphs in {source.name}")
        return structure

    def _extract_program_id(self, source: SourceUnit) -> str:
        for line in source.upper_lines:
            match = self.program_id_pattern.search(line)
            if match:
                return match.group(1)
        return "UNKNOWN"

    def _extract_divisions(self, source: SourceUnit) -> List[str]:
        divisions = []
        for line in source.upper_lines:
            match = self.division_pattern.match(line)
            if match:
                name = "IDENTIFICATION" if match.group(1) == "ID" else match.group(1)
                if name not in divisions:
                    divisions.append(name)
        return divisions

    def _extract_copybooks(self, source: SourceUnit) -> List[CopybookRef]:
        copybooks = []
        seen = set()

        for i, line in enumerate(source.upper_lines):
            if is_comment_line(line):
                continue
            for match in self.copy_pattern.finditer(line):
                name = match.group(1)
                if name not in seen:
                    seen.add(name)
                    copybooks.append(CopybookRef(name=name, line_number=i + 1))

        return copybooks

    def _extract_paragraphs(self, source: SourceUnit, context: AnalysisContext,
                            anomalies: List[Anomaly]):
        paragraphs: List[Paragraph] = []
        names: Dict[str, Paragraph] = {}
        state = ParagraphScanState.BEFORE_PROCEDURE
        procedure_line = 0
        current: Optional[Paragraph] = None

        for i, line in enumerate(source.upper_lines):
            if state is ParagraphScanState.BEFORE_PROCEDURE:
                if 'PROCEDURE DIVISION' in line and not is_comment_line(line):
                    state = ParagraphScanState.IN_PROCEDURE
                    procedure_line = i + 1
                continue

            name = self._paragraph_header(line)
            if name is None:
                continue

            if name in names:
                # First occurrence owns the name; the repeat is reported only
                anomalies.append(context.record_anomaly(
                    "DUPLICATE_PARAGRAPH", source.name, line_number=i + 1, name=name,
                    detail=f"first defined at line {names[name].line_start}",
                ))
                continue

            if current is not None:
                current.line_end = i
            current = Paragraph(
                name=name,
                line_start=i + 1,
                line_end=len(source.upper_lines),
                purpose=PARAGRAPH_PURPOSE.evaluate(name),
            )
            paragraphs.append(current)
            names[name] = current

        return paragraphs, procedure_line

    def _paragraph_header(self, line: str) -> Optional[str]:
        if 'DIVISION' in line or is_comment_line(line):
            return None
        match = self.paragraph_pattern.match(line)
        if not match:
            return None
        name = match.group(1)
        if name in self.RESERVED_WORDS:
            return None
        return name

    def _link_performs(self, source: SourceUnit, paragraphs: List[Paragraph]) -> None:
        by_name = {p.name: p for p in paragraphs}

        for para in paragraphs:
            for i in range(para.line_start - 1, min(para.line_end, len(source.upper_lines))):
                line = source.upper_lines[i]
                if is_comment_line(line):
                    continue
                for match in self.perform_pattern.finditer(line):
                    for target in match.groups():
                        if target and target in by_name:
                            self._add_edge(para, by_name[target])

    @staticmethod
    def _add_edge(caller: Paragraph, callee: Paragraph) -> None:
        if callee.name not in caller.performs:
            caller.performs.append(callee.name)
        if caller.name not in callee.performed_by:
            callee.performed_by.append(caller.name)
