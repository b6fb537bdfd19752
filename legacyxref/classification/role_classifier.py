"""
Program Role Classifier

Assigns each program one role tag with a fixed confidence and the evidence
behind it.

Order of evaluation:
1. Kind precondition: a program executed by any JCL step is BATCH kind,
   whatever its overview says. Other programs take their kind from the
   overview processing type.
2. The role table for that kind (first match wins). MASTER_MAINTENANCE
   only appears in the online table.
3. The fallback table for that kind (observed behavior, then name hints).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set
import logging

from legacyxref.jcl.models import JclFacts
from legacyxref.rules import Rule, RuleTable
from legacyxref.static_analysis.models import ProgramFacts
from legacyxref.xref.graph_builder import program_key
from legacyxref.xref.models import CrossReferenceGraph

logger = logging.getLogger(__name__)


class ProgramKind(Enum):
    BATCH = "BATCH"
    ONLINE = "ONLINE"


@dataclass
class RoleSignals:
    """Observable facts a role rule may look at"""
    name: str
    kind: ProgramKind
    interactive: bool
    sql_operations: Set[str]
    file_operations: Set[str]
    has_files: bool
    indexed_access: bool
    aggregation: bool

    @property
    def has_db(self) -> bool:
        return bool(self.sql_operations)

    @property
    def db_writes(self) -> bool:
        return bool({"INSERT", "UPDATE"} & self.sql_operations)

    @property
    def full_crud(self) -> bool:
        return {"INSERT", "UPDATE", "DELETE"} <= self.sql_operations

    @property
    def read_only_db(self) -> bool:
        return "SELECT" in self.sql_operations and not self.db_writes

    @property
    def indexed_crud(self) -> bool:
        ops = self.file_operations
        return ("READ" in ops or "START" in ops) and "WRITE" in ops and ("REWRITE" in ops or "DELETE" in ops)

    def named(self, *keywords: str) -> bool:
        return any(k in self.name for k in keywords)


@dataclass
class RoleAssignment:
    program_id: str
    role: str
    confidence: float
    kind: str
    evidence: List[str] = field(default_factory=list)
    entities_managed: List[str] = field(default_factory=list)


def _role(role: str, confidence: float, evidence: str) -> tuple:
    return role, confidence, evidence


_NAMING_RULES = [
    Rule(lambda s: s.named("EXTRACT", "EXT", "EXPORT", "UNLOAD"),
         _role("DATA_EXTRACTION", 0.70, "Data extraction naming pattern")),
    Rule(lambda s: s.named("INTERFACE", "IMPORT", "LOAD", "RECV"),
         _role("INTERFACE", 0.70, "Interface/import naming pattern")),
    Rule(lambda s: s.named("UTIL", "COMMON", "COPY", "INIT"),
         _role("UTILITY", 0.60, "Utility naming pattern")),
    Rule(lambda s: s.named("VALID", "CHECK", "VERIFY", "EDIT"),
         _role("VALIDATION", 0.65, "Validation naming pattern")),
    Rule(lambda s: s.named("CALC", "COMPUTE", "PROC", "PROCESS"),
         _role("CALCULATION", 0.65, "Calculation/processing naming pattern")),
]

BATCH_ROLE_RULES = RuleTable([
    Rule(lambda s: s.full_crud,
         _role("BATCH_UPDATE", 0.80, "Full CRUD operations on database in a batch program")),
    Rule(lambda s: s.has_files and s.db_writes,
         _role("BATCH_UPDATE", 0.75, "File processing with database updates")),
    Rule(lambda s: s.aggregation,
         _role("BATCH_AGGREGATION", 0.70, "Sequential read with accumulator/counter patterns")),
    Rule(lambda s: s.read_only_db,
         _role("BATCH_REPORTING", 0.70, "Batch program with read-only data access")),
    *_NAMING_RULES,
    Rule(lambda s: s.has_files,
         _role("BATCH_UPDATE", 0.50, "Batch program with file operations")),
])

ONLINE_ROLE_RULES = RuleTable([
    Rule(lambda s: s.full_crud,
         _role("MASTER_MAINTENANCE", 0.85, "Full CRUD operations on database")),
    Rule(lambda s: s.indexed_access and s.indexed_crud,
         _role("MASTER_MAINTENANCE", 0.80, "Full CRUD operations on indexed files (READ/WRITE/REWRITE/DELETE)")),
    Rule(lambda s: s.interactive and "INSERT" in s.sql_operations,
         _role("TRANSACTION_PROCESSING", 0.80, "INSERT operations in interactive program")),
    Rule(lambda s: s.interactive and s.indexed_access,
         _role("TRANSACTION_PROCESSING", 0.75, "Interactive program with indexed file write access")),
    Rule(lambda s: s.has_files and s.db_writes,
         _role("BATCH_UPDATE", 0.75, "File processing with database updates")),
    Rule(lambda s: s.read_only_db,
         _role("REPORTING", 0.70, "Read-only database access")),
    *_NAMING_RULES,
    Rule(lambda s: s.named("MAINT", "MASTER", "MST", "UPDATE"),
         _role("MASTER_MAINTENANCE", 0.55, "Master maintenance naming pattern")),
])

BATCH_FALLBACK_RULES = RuleTable([
    Rule(lambda s: s.db_writes, _role("BATCH_UPDATE", 0.45, "Database write operations detected")),
    Rule(lambda s: s.has_db, _role("REPORTING", 0.45, "Database read operations detected")),
    Rule(lambda s: s.has_files, _role("BATCH_UPDATE", 0.45, "Batch program with file operations")),
], default=_role("BATCH_UPDATE", 0.40, "Batch processing mode"))

_NAME_HINTS = [
    ("RPT", "REPORTING"),
    ("REPORT", "REPORTING"),
    ("PRINT", "REPORTING"),
    ("INQ", "REPORTING"),
    ("ADD", "MASTER_MAINTENANCE"),
    ("DEL", "MASTER_MAINTENANCE"),
    ("MOD", "MASTER_MAINTENANCE"),
    ("EDIT", "VALIDATION"),
    ("CONV", "UTILITY"),
    ("SORT", "UTILITY"),
    ("MERGE", "UTILITY"),
]


def _name_hint_rule(hint: str, role: str) -> Rule:
    evidence = f"Naming pattern suggests {role.lower().replace('_', ' ')}"
    return Rule(lambda s: hint in s.name, _role(role, 0.40, evidence), name=hint)


ONLINE_FALLBACK_RULES = RuleTable([
    Rule(lambda s: s.db_writes, _role("TRANSACTION_PROCESSING", 0.45, "Database write operations detected")),
    Rule(lambda s: s.has_db, _role("REPORTING", 0.45, "Database read operations detected")),
    Rule(lambda s: s.has_files, _role("INTERFACE", 0.40, "File-based operations suggest interface role")),
    Rule(lambda s: s.interactive, _role("TRANSACTION_PROCESSING", 0.40, "Online program processing")),
    *[_name_hint_rule(hint, role) for hint, role in _NAME_HINTS],
], default=_role(
    "UTILITY", 0.30,
    "Role not clearly identifiable from source; inferred as UTILITY with low confidence. Manual review recommended.",
))

ROLE_TABLES = {
    ProgramKind.BATCH: (BATCH_ROLE_RULES, BATCH_FALLBACK_RULES),
    ProgramKind.ONLINE: (ONLINE_ROLE_RULES, ONLINE_FALLBACK_RULES),
}

AGGREGATION_WORDS = ("COUNT", "TOTAL", "SUM", "CTR", "ACCUM", "AGGREGATE")
INDEXED_PARAGRAPH_WORDS = ("VSAM", "KEY-READ", "KSDS", "START-READ", "RANDOM-READ")


def jcl_executed_programs(jobs: Iterable[JclFacts]) -> Set[str]:
    """Every program name run by a step of any job or procedure"""
    return {name for jcl in jobs for name in jcl.executed_programs}


def has_indexed_access(program: ProgramFacts) -> bool:
    """I-O files, REWRITE/DELETE verbs or keyed-read paragraph names"""
    for file in program.file_access:
        if file.access_mode == "I-O":
            return True
        if "REWRITE" in file.operations or "DELETE" in file.operations:
            return True
    return any(
        word in para.name for para in program.paragraphs for word in INDEXED_PARAGRAPH_WORDS
    )


def has_aggregation_pattern(program: ProgramFacts) -> bool:
    if any(word in item.name for item in program.data_items for word in AGGREGATION_WORDS):
        return True
    if any(word in para.name for para in program.paragraphs
           for word in ("ACCUMULATE", "TOTAL", "SUMMARIZE", "AGGREGATE")):
        return True
    return any(
        word in rule.description.upper() for rule in program.business_rules
        for word in ("ACCUMULATE", "TOTAL", "COUNT")
    )


def program_kind(program: ProgramFacts, executed: Set[str]) -> ProgramKind:
    if program_key(program) in executed:
        return ProgramKind.BATCH
    if program.processing_type == "Batch":
        return ProgramKind.BATCH
    return ProgramKind.ONLINE


class RoleClassifier:
    """Classify program roles from facts and the cross-reference graph"""

    def classify(self, programs: Iterable[ProgramFacts], jobs: Iterable[JclFacts],
                 xref: Optional[CrossReferenceGraph] = None) -> List[RoleAssignment]:
        executed = jcl_executed_programs(jobs)
        assignments = [self.classify_program(p, executed, xref) for p in programs if not p.is_empty]

        counts: Dict[str, int] = {}
        for a in assignments:
            counts[a.role] = counts.get(a.role, 0) + 1
        logger.info(f"Classified {len(assignments)} program roles: {counts}")
        return assignments

    def classify_program(self, program: ProgramFacts, executed: Set[str],
                         xref: Optional[CrossReferenceGraph] = None) -> RoleAssignment:
        program_id = program_key(program)
        kind = program_kind(program, executed)
        signals = self.signals(program, kind)

        role_table, fallback_table = ROLE_TABLES[kind]
        role, confidence, evidence = role_table.evaluate(signals) or fallback_table.evaluate(signals)

        reasons = [evidence]
        if program_id in executed:
            reasons.insert(0, "Executed by a JCL step")

        entities = list(xref.program_to_entities.get(program_id, [])) if xref else []
        return RoleAssignment(
            program_id=program_id,
            role=role,
            confidence=confidence,
            kind=kind.value,
            evidence=reasons,
            entities_managed=entities,
        )

    @staticmethod
    def signals(program: ProgramFacts, kind: ProgramKind) -> RoleSignals:
        file_ops = {op.upper() for f in program.file_access for op in f.operations}
        return RoleSignals(
            name=program_key(program),
            kind=kind,
            interactive=kind is ProgramKind.ONLINE and program.processing_type in ("Online", "Interactive"),
            sql_operations={a.operation for a in program.data_access},
            file_operations=file_ops,
            has_files=bool(program.file_access),
            indexed_access=has_indexed_access(program),
            aggregation=has_aggregation_pattern(program),
        )
