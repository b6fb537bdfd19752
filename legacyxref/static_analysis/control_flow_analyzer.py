"""Control Flow Analyzer for COBOL

Decision points and control-flow metrics of the PROCEDURE DIVISION:
- IF (with ELSE lookahead), EVALUATE (with WHEN labels),
  PERFORM ... UNTIL loops, AT END handlers
- Cyclomatic approximation, max nested IF depth, GO TO / EVALUATE /
  PERFORM counts
"""

import re
from typing import List, Optional
import logging

from legacyxref.context import AnalysisContext
from legacyxref.source import SourceUnit
from .cobol_parser import ParagraphIndex, is_comment_line
from .models import ControlFlowMetrics, DecisionFact, Paragraph
from .naming import interpret_condition, simplify_condition

logger = logging.getLogger(__name__)

IF_PATTERN = re.compile(r'(?:^|\s)IF\s')
GOTO_PATTERN = re.compile(r'\bGO\s*TO\b')


class DecisionPointExtractor:
    """
    Find branching constructs.

    Branch labels come from a bounded forward lookahead; a construct whose
    terminator is not inside the window is truncated at the window edge.
    """

    def __init__(self):
        self.if_condition_pattern = re.compile(r'\bIF\s+(.+?)(?:\s+THEN)?\.?\s*$')
        self.evaluate_pattern = re.compile(r'\bEVALUATE\s+(.+?)\.?\s*$')
        self.until_pattern = re.compile(r'\bUNTIL\s+(.+?)\.?\s*$')
        self.when_pattern = re.compile(r'\bWHEN\s+(.+?)\.?\s*$')

    def extract(self, source: SourceUnit, paragraphs: List[Paragraph],
                procedure_line: int = 0,
                context: Optional[AnalysisContext] = None) -> List[DecisionFact]:
        """
        Extract decision points.

        Args:
            source: Program source
            paragraphs: Paragraphs from the structure parser
            procedure_line: 1-based PROCEDURE DIVISION line (0 scans everything)
            context: Run context supplying lookahead windows

        Returns:
            DecisionFacts in source order
        """
        context = context or AnalysisContext()
        if_window = context.window("if_else", 20)
        when_window = context.window("evaluate_when", 30)

        index = ParagraphIndex(paragraphs)
        lines = source.upper_lines
        decisions = []

        for i in range(procedure_line, len(lines)):
            line = lines[i]
            if is_comment_line(line):
                continue
            paragraph = index.name_at(i + 1)

            if IF_PATTERN.search(line):
                match = self.if_condition_pattern.search(line)
                if match:
                    condition = match.group(1).strip()
                    decisions.append(DecisionFact(
                        kind="IF",
                        condition=condition,
                        branches=self._if_branches(lines, i, if_window),
                        paragraph=paragraph,
                        line_number=i + 1,
                        business_meaning=interpret_condition(condition),
                    ))

            if 'EVALUATE' in line and 'END-EVALUATE' not in line:
                match = self.evaluate_pattern.search(line)
                if match:
                    subject = match.group(1).strip()
                    decisions.append(DecisionFact(
                        kind="EVALUATE",
                        condition=subject,
                        branches=self._evaluate_branches(lines, i, when_window),
                        paragraph=paragraph,
                        line_number=i + 1,
                        business_meaning=f"Decision routing based on {simplify_condition(subject)}",
                    ))

            if 'PERFORM' in line and 'UNTIL' in line:
                match = self.until_pattern.search(line)
                if match:
                    condition = match.group(1).strip()
                    decisions.append(DecisionFact(
                        kind="PERFORM_UNTIL",
                        condition=condition,
                        branches=["Continue loop", "Exit loop"],
                        paragraph=paragraph,
                        line_number=i + 1,
                        business_meaning=f"Loop until {simplify_condition(condition)}",
                    ))

            if 'AT END' in line and 'NOT AT END' not in line:
                decisions.append(DecisionFact(
                    kind="AT_END",
                    condition="End of file reached",
                    branches=["End of file processing", "Continue reading"],
                    paragraph=paragraph,
                    line_number=i + 1,
                    business_meaning="Handle end of data",
                ))

        logger.info(f"Found {len(decisions)} decision points in {source.name}")
        return decisions

    @staticmethod
    def _if_branches(lines, start: int, window: int) -> List[str]:
        branches = ["TRUE branch"]
        for i in range(start + 1, min(start + window, len(lines))):
            if 'END-IF' in lines[i]:
                break
            if lines[i].strip().startswith('ELSE'):
                branches.append("FALSE branch")
                break
        return branches

    def _evaluate_branches(self, lines, start: int, window: int) -> List[str]:
        branches = []
        for i in range(start + 1, min(start + window, len(lines))):
            if 'END-EVALUATE' in lines[i]:
                break
            match = self.when_pattern.search(lines[i])
            if match:
                branches.append(match.group(1).strip())
        return branches


class ControlFlowAnalyzer:
    """Count control-flow constructs for complexity scoring"""

    def analyze(self, source: SourceUnit) -> ControlFlowMetrics:
        metrics = ControlFlowMetrics()
        depth = 0

        for line in source.upper_lines:
            if is_comment_line(line):
                continue

            if IF_PATTERN.search(line):
                metrics.cyclomatic += 1
                depth += 1
                metrics.max_if_depth = max(metrics.max_if_depth, depth)
            if 'END-IF' in line:
                depth = max(0, depth - 1)
            if line.rstrip().endswith('.'):
                # A period closes every open IF
                depth = 0

            if 'EVALUATE' in line and 'END-EVALUATE' not in line:
                metrics.cyclomatic += 1
                metrics.evaluate_count += 1
            if 'PERFORM' in line:
                metrics.perform_count += 1
                if 'UNTIL' in line:
                    metrics.cyclomatic += 1
            if re.search(r'\bWHEN\b', line):
                metrics.cyclomatic += 1
            if GOTO_PATTERN.search(line):
                metrics.goto_count += 1
                metrics.cyclomatic += 1

        return metrics
