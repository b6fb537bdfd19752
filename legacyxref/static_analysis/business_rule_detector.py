"""Business Rule Detector for COBOL

Pattern-based inference of business rules and error handling:
- IF followed closely by an error DISPLAY -> VALIDATION
- IF on a business condition, EVALUATE -> DECISION
- COMPUTE / ADD ... TO / SUBTRACT ... FROM -> CALCULATION
- SQLCODE comparisons, FILE STATUS checks, error DISPLAYs -> error conditions

Every rule carries a fixed confidence for its kind. Nothing here proves a
rule exists; these are leads for a reader of the source.
"""

import re
from typing import List, Optional
import logging

from legacyxref.context import AnalysisContext
from legacyxref.source import SourceUnit
from .cobol_parser import ParagraphIndex, is_comment_line
from .control_flow_analyzer import IF_PATTERN
from .models import BusinessRule, ErrorCondition, Paragraph
from .naming import ERROR_BEHAVIOR, ERROR_HANDLING, is_business_condition, simplify_condition

logger = logging.getLogger(__name__)


class BusinessRuleDetector:
    """
    Detect business rules and error conditions in the PROCEDURE DIVISION.

    Rule ids are numbered BR-001, BR-002, ... in source order per program.
    """

    def __init__(self):
        # Fixed confidence per rule kind
        self.rule_confidence = {
            "VALIDATION": 0.90,
            "DECISION": 0.80,
            "CALCULATION": 0.95,
        }

        self.if_condition_pattern = re.compile(r'\bIF\s+(.+?)(?:\s+THEN)?\.?\s*$')
        self.evaluate_pattern = re.compile(r'\bEVALUATE\s+(.+?)\.?\s*$')
        self.arithmetic_pattern = re.compile(r'\b(COMPUTE|ADD|SUBTRACT|MULTIPLY|DIVIDE)\b')
        self.calculation_pattern = re.compile(
            r'(COMPUTE\s+[A-Z0-9\-]+\s*=.+|ADD\s+.+TO\s+[A-Z0-9\-]+|SUBTRACT\s+.+FROM\s+[A-Z0-9\-]+)'
        )
        self.error_words = ('ERROR', 'INVALID', 'FAILED')

        self.sqlcode_pattern = re.compile(r'SQLCODE\s*([<>=!]+|NOT\s*=)\s*(\d+|ZERO|ZEROS)')
        self.display_message_pattern = re.compile(r'DISPLAY\s+[\'"]([^\'"]+)[\'"]', re.IGNORECASE)

    def detect_rules(self, source: SourceUnit, paragraphs: List[Paragraph],
                     procedure_line: int = 0,
                     context: Optional[AnalysisContext] = None) -> List[BusinessRule]:
        """
        Detect business rules.

        Args:
            source: Program source
            paragraphs: Paragraphs from the structure parser
            procedure_line: 1-based PROCEDURE DIVISION line (0 scans everything)
            context: Run context supplying the lookahead window

        Returns:
            BusinessRule list in source order
        """
        context = context or AnalysisContext()
        window = context.window("rule_context", 4)
        index = ParagraphIndex(paragraphs)
        lines = source.upper_lines
        rules: List[BusinessRule] = []

        def add(rule_type: str, description: str, implementation: str, line_number: int):
            rules.append(BusinessRule(
                rule_id=f"BR-{len(rules) + 1:03d}",
                rule_type=rule_type,
                description=description,
                implementation=implementation,
                paragraph=index.name_at(line_number),
                line_number=line_number,
                confidence=self.rule_confidence[rule_type],
            ))

        for i in range(procedure_line, len(lines)):
            line = lines[i]
            if is_comment_line(line):
                continue

            if IF_PATTERN.search(line):
                match = self.if_condition_pattern.search(line)
                if match:
                    condition = match.group(1).strip()
                    following = " ".join(lines[i + 1:i + 1 + window])
                    if 'DISPLAY' in following and any(w in following for w in self.error_words):
                        add("VALIDATION", simplify_condition(condition), f"IF {condition}", i + 1)
                    elif is_business_condition(condition):
                        add("DECISION", simplify_condition(condition), f"IF {condition}", i + 1)

            if 'EVALUATE' in line and 'END-EVALUATE' not in line:
                match = self.evaluate_pattern.search(line)
                if match:
                    subject = match.group(1).strip()
                    add("DECISION", f"Decision based on {simplify_condition(subject)}",
                        f"EVALUATE {subject}", i + 1)

            if self.arithmetic_pattern.search(line):
                match = self.calculation_pattern.search(line)
                if match:
                    statement = match.group(1).strip().rstrip('.')
                    add("CALCULATION", self._describe_calculation(statement), statement, i + 1)

        logger.info(f"Found {len(rules)} business rules in {source.name}")
        return rules

    @staticmethod
    def _describe_calculation(statement: str) -> str:
        if statement.startswith('COMPUTE'):
            target = re.search(r'COMPUTE\s+([A-Z0-9\-]+)', statement)
            return f"Calculate {target.group(1) if target else 'value'}"
        if statement.startswith('ADD'):
            operand = re.search(r'ADD\s+(.+?)\s+TO', statement)
            return f"Accumulate {operand.group(1) if operand else 'value'}"
        if statement.startswith('SUBTRACT'):
            operand = re.search(r'SUBTRACT\s+(.+?)\s+FROM', statement)
            return f"Deduct {operand.group(1) if operand else 'value'}"
        return "Perform calculation"

    def detect_error_conditions(self, source: SourceUnit, paragraphs: List[Paragraph],
                                procedure_line: int = 0,
                                context: Optional[AnalysisContext] = None) -> List[ErrorCondition]:
        """Detect SQLCODE checks, file status checks and error messages"""
        context = context or AnalysisContext()
        window = context.window("error_context", 4)
        index = ParagraphIndex(paragraphs)
        lines = source.upper_lines
        errors = []

        for i in range(procedure_line, len(lines)):
            line = lines[i]
            if is_comment_line(line):
                continue
            paragraph = index.name_at(i + 1)

            sqlcode = self.sqlcode_pattern.search(line) if 'SQLCODE' in line else None
            if sqlcode:
                following_raw = " ".join(source.lines[i + 1:i + 1 + window])
                following = following_raw.upper()
                message = self.display_message_pattern.search(following_raw)
                errors.append(ErrorCondition(
                    error_type="SQL Error",
                    detection=f"SQLCODE {sqlcode.group(1)} {sqlcode.group(2)}",
                    handling=ERROR_HANDLING.evaluate(following),
                    behavior=ERROR_BEHAVIOR.evaluate(following),
                    paragraph=paragraph,
                    line_number=i + 1,
                    user_message=message.group(1) if message else None,
                ))

            if 'FILE-STATUS' in line or 'FILE STATUS' in line:
                errors.append(ErrorCondition(
                    error_type="File Error",
                    detection="FILE-STATUS check",
                    handling="Status code validation",
                    behavior="CONTINUE",
                    paragraph=paragraph,
                    line_number=i + 1,
                ))

            if 'DISPLAY' in line and any(w in line for w in ('ERROR', 'FAIL', 'INVALID')):
                message = self.display_message_pattern.search(source.lines[i])
                errors.append(ErrorCondition(
                    error_type="Business Error",
                    detection="Business condition",
                    handling="Display error message",
                    behavior="CONTINUE",
                    paragraph=paragraph,
                    line_number=i + 1,
                    user_message=message.group(1) if message else None,
                ))

        if errors:
            logger.info(f"Found {len(errors)} error conditions in {source.name}")
        return errors
