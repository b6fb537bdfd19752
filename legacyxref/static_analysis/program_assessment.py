"""Program-level summaries built from extracted facts

- Line and construct metrics
- Overview: processing type, purpose, responsibility, trigger, termination
- Three-factor difficulty assessment (logic, data, business rule density)
- Business process steps walked from the entry paragraph
"""

import re
from typing import Dict, List, Set
import logging

from legacyxref.rules import Rule, RuleTable, contains_any
from legacyxref.source import SourceUnit
from .cobol_parser import is_comment_line
from .models import (
    AssessmentFactor,
    BusinessRule,
    DataAccessFact,
    DecisionFact,
    FileAccessFact,
    Paragraph,
    ProcessStep,
    ProgramAssessment,
    ProgramMetrics,
    ProgramOverview,
)

logger = logging.getLogger(__name__)


FILE_OPERATION_PATTERN = re.compile(r'\b(OPEN|READ|WRITE|CLOSE|REWRITE|DELETE)\b')
PACKED_DECIMAL_PATTERN = re.compile(r'\b(COMP-3|PACKED-DECIMAL)\b')
COMPLEX_PICTURE_PATTERN = re.compile(r'PIC\s+[^.\s]*[SVP9X]{5,}')
SORT_MERGE_PATTERN = re.compile(r'\b(SORT|MERGE|RELEASE|RETURN)\b')
ACCEPT_PATTERN = re.compile(r'\bACCEPT\b')
ACCEPT_SYSTEM_VALUE_PATTERN = re.compile(r'\bACCEPT\b.*\bFROM\s+(DATE|TIME|DAY)')


def collect_metrics(source: SourceUnit, paragraph_count: int = 0) -> ProgramMetrics:
    """Count lines and migration-relevant constructs"""
    metrics = ProgramMetrics(total_lines=len(source), paragraph_count=paragraph_count)

    for raw, line in zip(source.lines, source.upper_lines):
        if not raw.strip():
            metrics.blank_lines += 1
            continue
        if is_comment_line(line):
            metrics.comment_lines += 1
            continue
        metrics.code_lines += 1

        if 'EXEC SQL' in line or 'EXEC-SQL' in line:
            metrics.sql_statement_count += 1
        if FILE_OPERATION_PATTERN.search(line):
            metrics.file_operation_count += 1
        if 'COPY ' in line:
            metrics.copybook_count += 1
        if 'OCCURS' in line:
            metrics.occurs_count += 1
        if 'REDEFINES' in line:
            metrics.redefines_count += 1
        if PACKED_DECIMAL_PATTERN.search(line):
            metrics.packed_decimal_count += 1
        if 'CALL' in line and ('ILBOA' in line or 'ASMX' in line):
            metrics.assembler_call_count += 1
        if COMPLEX_PICTURE_PATTERN.search(line):
            metrics.complex_picture_count += 1
        if SORT_MERGE_PATTERN.search(line):
            metrics.sort_merge_count += 1
        if 'REPORT' in line and 'SECTION' in line:
            metrics.uses_report_writer = True

    return metrics


# ===========================================
# Overview
# ===========================================

def _has_user_accept(source: SourceUnit) -> bool:
    for line in source.upper_lines:
        if is_comment_line(line):
            continue
        if ACCEPT_PATTERN.search(line) and not ACCEPT_SYSTEM_VALUE_PATTERN.search(line):
            return True
    return False


def determine_processing_type(source: SourceUnit, files: List[FileAccessFact],
                              data_access: List[DataAccessFact]) -> str:
    """Batch, Online, Interactive or Unknown"""
    if any('EXEC CICS' in line for line in source.upper_lines if not is_comment_line(line)):
        return "Online"
    if _has_user_accept(source):
        return "Interactive"
    if any(f.access_mode in ("INPUT", "OUTPUT") for f in files):
        return "Batch"
    if data_access:
        return "Online"
    return "Unknown"


TRIGGER_CONDITION = {
    "Interactive": "User initiates program and provides input",
    "Batch": "Scheduled job or JCL execution",
}


def build_overview(source: SourceUnit, program_id: str, files: List[FileAccessFact],
                   data_access: List[DataAccessFact]) -> ProgramOverview:
    processing_type = determine_processing_type(source, files, data_access)
    operations = {fact.operation for fact in data_access}

    if operations >= {"SELECT", "INSERT", "UPDATE", "DELETE"}:
        purpose = f"CRUD operations management for {data_access[0].entity}"
    elif "SELECT" in operations and "INSERT" not in operations:
        purpose = "Data retrieval and reporting"
    elif files:
        purpose = f"File processing ({', '.join(f.access_mode for f in files)})"
    else:
        purpose = f"COBOL program {program_id}"

    tables = list(dict.fromkeys(fact.entity for fact in data_access))
    if tables:
        responsibility = f"Manage {', '.join(tables)} data"
    elif files:
        responsibility = f"Process {', '.join(f.external_name or f.handle for f in files)} files"
    else:
        responsibility = "Data processing"

    if any('STOP RUN' in line for line in source.upper_lines):
        termination = "Program terminates via STOP RUN after completing main process"
    elif any('GOBACK' in line for line in source.upper_lines):
        termination = "Program returns control via GOBACK"
    else:
        termination = "STOP RUN"

    return ProgramOverview(
        purpose=purpose,
        business_responsibility=responsibility,
        processing_type=processing_type,
        trigger_condition=TRIGGER_CONDITION.get(processing_type, "Not found in provided source"),
        termination_condition=termination,
    )


# ===========================================
# Three-factor assessment
# ===========================================

DIFFICULTY_JUSTIFICATION = {
    "Low": "Straightforward program with simple flow, limited data sources, and few business rules.",
    "Medium": "Moderate complexity with some decision logic, multiple data sources, "
              "or significant business rules.",
    "High": "Complex program with deep logic branching, multiple data dependencies, "
            "and dense business rules.",
}


class ProgramAssessor:
    """
    Score a program 1-5 on logic, data and business rule density.

    The average of the three maps to Low (<= 2), Medium (<= 3.5) or High.
    """

    MAX_SCORE = 5

    def assess(self, paragraphs: List[Paragraph], decisions: List[DecisionFact],
               data_access: List[DataAccessFact], files: List[FileAccessFact],
               rules: List[BusinessRule]) -> ProgramAssessment:
        logic = self._logic(paragraphs, decisions)
        data = self._data(data_access, files)
        density = self._rule_density(rules)

        average = (logic.score + data.score + density.score) / 3
        if average <= 2:
            difficulty = "Low"
        elif average <= 3.5:
            difficulty = "Medium"
        else:
            difficulty = "High"

        return ProgramAssessment(
            logic=logic,
            data=data,
            rule_density=density,
            overall_difficulty=difficulty,
            justification=DIFFICULTY_JUSTIFICATION[difficulty],
        )

    def _logic(self, paragraphs, decisions) -> AssessmentFactor:
        score, factors = 1, []

        if len(decisions) > 10:
            score += 2
            factors.append(f"High decision count ({len(decisions)})")
        elif len(decisions) > 5:
            score += 1
            factors.append(f"Moderate decision count ({len(decisions)})")

        evaluates = sum(1 for d in decisions if d.kind == "EVALUATE")
        if evaluates > 3:
            score += 1
            factors.append(f"Multiple EVALUATE statements ({evaluates})")

        if sum(1 for p in paragraphs if len(p.performs) > 2) > 3:
            score += 1
            factors.append("Deep paragraph nesting")

        return AssessmentFactor(min(self.MAX_SCORE, score), factors or ["Simple linear flow"])

    def _data(self, data_access, files) -> AssessmentFactor:
        score, factors = 1, []

        sources = len(data_access) + len(files)
        if sources > 5:
            score += 2
            factors.append(f"Multiple data sources ({sources})")
        elif sources > 2:
            score += 1
            factors.append(f"Moderate data sources ({sources})")

        tables = len({d.entity for d in data_access})
        if tables > 3:
            score += 1
            factors.append(f"Multiple tables ({tables})")

        if len({d.operation for d in data_access}) >= 4:
            score += 1
            factors.append("Full CRUD operations")

        return AssessmentFactor(min(self.MAX_SCORE, score), factors or ["Simple data structure"])

    def _rule_density(self, rules) -> AssessmentFactor:
        score, factors = 1, []

        if len(rules) > 15:
            score += 2
            factors.append(f"High rule count ({len(rules)})")
        elif len(rules) > 7:
            score += 1
            factors.append(f"Moderate rule count ({len(rules)})")

        validations = sum(1 for r in rules if r.rule_type == "VALIDATION")
        if validations > 5:
            score += 1
            factors.append(f"Multiple validations ({validations})")

        calculations = sum(1 for r in rules if r.rule_type == "CALCULATION")
        if calculations > 3:
            score += 1
            factors.append(f"Multiple calculations ({calculations})")

        return AssessmentFactor(min(self.MAX_SCORE, score), factors or ["Low business rule density"])


# ===========================================
# Business process steps
# ===========================================

def _sql_has(operation: str):
    return lambda name, sql_ops: any(operation in op for op in sql_ops)


BUSINESS_ACTION = RuleTable([
    Rule(lambda name, sql_ops: contains_any(("MAIN", "CONTROL"))(name), "Control program flow"),
    Rule(lambda name, sql_ops: "INIT" in name, "Initialize processing"),
    Rule(lambda name, sql_ops: contains_any(("CREATE", "INSERT"))(name)
         or _sql_has("INSERT")(name, sql_ops), "Create new record"),
    Rule(lambda name, sql_ops: "READ" in name or _sql_has("SELECT")(name, sql_ops), "Retrieve data"),
    Rule(lambda name, sql_ops: "UPDATE" in name or _sql_has("UPDATE")(name, sql_ops),
         "Update existing record"),
    Rule(lambda name, sql_ops: "DELETE" in name or _sql_has("DELETE")(name, sql_ops), "Remove record"),
    Rule(lambda name, sql_ops: "VALID" in name, "Validate data"),
    Rule(lambda name, sql_ops: "CALC" in name, "Perform calculation"),
    Rule(lambda name, sql_ops: contains_any(("PRINT", "REPORT"))(name), "Generate output"),
    Rule(lambda name, sql_ops: "ERROR" in name, "Handle error"),
    Rule(lambda name, sql_ops: contains_any(("END", "TERM"))(name), "Terminate processing"),
])


def build_process_steps(paragraphs: List[Paragraph], data_access: List[DataAccessFact],
                        files: List[FileAccessFact]) -> List[ProcessStep]:
    """
    Walk the PERFORM tree depth-first from the first paragraph.

    Each paragraph appears at most once; PERFORM cycles stop at the first
    revisit.
    """
    if not paragraphs:
        return []

    by_name: Dict[str, Paragraph] = {p.name: p for p in paragraphs}
    file_ops = [f"{'/'.join(f.operations)} {f.handle}" for f in files if f.operations]
    steps: List[ProcessStep] = []
    visited: Set[str] = set()
    stack = [paragraphs[0]]

    while stack:
        para = stack.pop()
        if para.name in visited:
            continue
        visited.add(para.name)

        sql_ops = [f"{d.operation} {d.entity}" for d in data_access if d.paragraph == para.name]
        action = BUSINESS_ACTION.evaluate(para.name, sql_ops) or para.purpose
        steps.append(ProcessStep(
            step_number=len(steps) + 1,
            paragraph=para.name,
            line_start=para.line_start,
            line_end=para.line_end,
            business_action=action,
            description=para.purpose,
            called_paragraphs=list(para.performs),
            sql_operations=sql_ops,
            file_operations=list(file_ops),
        ))

        # Reversed so the first PERFORM is visited first
        for name in reversed(para.performs):
            if name in by_name and name not in visited:
                stack.append(by_name[name])

    return steps
