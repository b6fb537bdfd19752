"""
Business Process Grouping

Groups programs and jobs by business domain rather than one process per
program, and lists the persistent business entities they touch.

- Domain from name keywords, then from tables accessed, then from CRUD shape
- Processing type per group: ONLINE, BATCH or HYBRID
- Data access paradigm: indexed files vs relational tables
- Business entities (MASTER / TRANSACTION / REFERENCE) from table names
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
import logging

from legacyxref.jcl.models import JclFacts
from legacyxref.rules import Rule, RuleTable, contains_any, keyword_table
from legacyxref.static_analysis.models import ProgramFacts
from legacyxref.xref.graph_builder import program_key
from .role_classifier import has_indexed_access, jcl_executed_programs

logger = logging.getLogger(__name__)


NAME_DOMAIN = keyword_table([
    (("CUST", "CLIENT", "MEMBER"), "Customer Management"),
    (("ACCT", "ACCOUNT", "BALANCE"), "Account Processing"),
    (("ORDER", "ORD", "SALE"), "Order Management"),
    (("TRANS", "TXN", "PAYMENT"), "Transaction Processing"),
    (("PROD", "ITEM", "INVENTORY", "STOCK"), "Product & Inventory Management"),
    (("REPORT", "RPT", "PRINT", "LIST"), "Reporting & Analytics"),
    (("DAILY", "NIGHTLY", "EOD"), "Daily Batch Processing"),
    (("MONTH", "EOM"), "Monthly Batch Processing"),
    (("MAINT", "MASTER", "UPDATE", "UPD"), "Master Data Maintenance"),
    (("INTERFACE", "EXPORT", "IMPORT", "EXTRACT"), "System Integration"),
    (("VALID", "CHECK", "VERIFY"), "Data Validation"),
    (("COMPANY", "CORP"), "Company Master Management"),
    (("EMPLOYEE", "EMP"), "Employee Master Management"),
    (("SUPPLIER", "VENDOR"), "Supplier Management"),
    (("SUMMARY", "SUM", "TOTAL", "AGG"), "Data Aggregation & Summary"),
])

TABLE_DOMAIN = keyword_table([
    (("COMPANY", "CORP"), "Company Master Management"),
    (("EMPLOYEE", "EMP", "STAFF"), "Employee Master Management"),
    (("CUSTOMER", "CUST"), "Customer Management"),
    (("ORDER", "SALES"), "Order Management"),
])

ENTITY_TYPE = RuleTable([
    Rule(contains_any(("MST", "MASTER", "_M_")), "MASTER"),
    Rule(contains_any(("TRN", "TRANS", "_T_", "HIST", "LOG")), "TRANSACTION"),
    Rule(contains_any(("REF", "CODE", "_CD", "TYPE", "_TYP")), "REFERENCE"),
], default="MASTER")

PROCESS_DESCRIPTION = {
    "Customer Management": "Handles customer registration, profile updates and customer data maintenance.",
    "Account Processing": "Manages account lifecycle, balance calculations and account status.",
    "Order Management": "Processes orders from creation through fulfillment.",
    "Transaction Processing": "Records and processes business transactions with an audit trail.",
    "Reporting & Analytics": "Generates business reports and extracts data for decision-making.",
    "Daily Batch Processing": "Executes daily scheduled jobs for synchronization and end-of-day processing.",
    "Monthly Batch Processing": "Handles month-end processing, statements and period closing.",
    "Master Data Maintenance": "Maintains core reference and master data.",
    "System Integration": "Exchanges data with external systems through files and interfaces.",
    "Data Validation": "Validates data against business rules before processing.",
}

IGNORED_NAME_PARTS = {"PGM", "PRG", "CBL", "COB", "JCL", "JOB", "BATCH", "ONLINE"}

TECHNICAL_PREFIXES = ("WS-", "WK-", "W-", "LS-", "LK-")
TECHNICAL_MARKERS = ("SQLCA", "SQLDA", "DFHAID", "DFHBMSCA", "-FLAG", "-CTR", "-COUNTER",
                     "-SW", "-SWITCH", "-DATE-WORK", "-TIME-WORK")


@dataclass
class BusinessEntity:
    entity_id: str
    business_name: str
    entity_type: str                # MASTER, TRANSACTION, REFERENCE
    source: str = "DATABASE"
    columns: List[str] = field(default_factory=list)
    used_by_programs: List[str] = field(default_factory=list)
    access_types: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class BusinessProcess:
    process_id: str
    process_name: str
    process_type: str               # ONLINE, BATCH, HYBRID
    description: str
    entry_points: List[str] = field(default_factory=list)
    programs_involved: List[str] = field(default_factory=list)
    entities_accessed: List[str] = field(default_factory=list)
    trigger_type: str = "UNKNOWN"   # USER_INITIATED, SCHEDULED
    frequency: Optional[str] = None
    estimated_complexity: str = "LOW"
    data_access_paradigm: str = "MIXED"
    indexed_programs: List[str] = field(default_factory=list)
    relational_programs: List[str] = field(default_factory=list)
    implementation_note: Optional[str] = None


@dataclass
class _ProcessGroup:
    types: set = field(default_factory=set)
    programs: List[str] = field(default_factory=list)
    jobs: List[str] = field(default_factory=list)
    entities: List[str] = field(default_factory=list)
    indexed_programs: List[str] = field(default_factory=list)
    relational_programs: List[str] = field(default_factory=list)
    file_programs: List[str] = field(default_factory=list)

    def add_entity(self, name: str) -> None:
        if name not in self.entities:
            self.entities.append(name)

    @property
    def process_type(self) -> str:
        if len(self.types) > 1:
            return "HYBRID"
        return next(iter(self.types), "BATCH")


def title_case(name: str) -> str:
    return " ".join(w.capitalize() for w in re.split(r'[-_ ]+', name) if w)


def business_name(technical_name: str) -> str:
    """TBL-CUSTOMER-REC -> 'Customer'"""
    name = re.sub(r'^(FD-|WS-|LS-|REC-|TBL-|MST-|TRN-)', '', technical_name, flags=re.IGNORECASE)
    name = re.sub(r'(-REC|-RECORD|-FILE)$', '', name, flags=re.IGNORECASE)
    return title_case(name)


def is_technical_artifact(name: str) -> bool:
    upper = name.upper()
    return upper.startswith(TECHNICAL_PREFIXES) or any(m in upper for m in TECHNICAL_MARKERS)


def infer_domain(name: str, program: Optional[ProgramFacts] = None) -> str:
    """Business domain for a program or job name"""
    upper = name.upper()
    domain = NAME_DOMAIN.evaluate(upper)
    if domain:
        return domain

    if program is not None:
        tables = " ".join(a.entity.upper() for a in program.data_access)
        domain = TABLE_DOMAIN.evaluate(tables) if tables else None
        if domain:
            return domain

        ops = {a.operation for a in program.data_access}
        if program.processing_type in ("Online", "Interactive"):
            if ops & {"INSERT", "UPDATE", "DELETE"} and "SELECT" in ops:
                master = next((a.entity for a in program.data_access
                               if "MST" in a.entity.upper() or "MASTER" in a.entity.upper()), None)
                if master:
                    return f"{business_name(master)} Maintenance (Online)"
                return "Online Master Maintenance"
            if ops == {"SELECT"}:
                return "Online Inquiry Processing"
            return "Online Transaction Processing"
        if program.processing_type == "Batch":
            if ops == {"SELECT"}:
                return "Batch Data Extraction"
            return "Batch Data Processing"

    for part in re.split(r'[^A-Z0-9]+', upper):
        if len(part) > 3 and part not in IGNORED_NAME_PARTS:
            return f"{title_case(part)} Processing"
    return "Business Data Processing"


def data_access_paradigm(indexed: List[str], relational: List[str], file_based: List[str]) -> str:
    if indexed and relational:
        return "VSAM_AND_RDB"
    if indexed:
        return "VSAM_ONLY"
    if relational:
        return "RDB_ONLY"
    if file_based:
        return "FILE_BASED"
    return "MIXED"


def _batch_frequency(domain: str) -> str:
    if "Daily" in domain:
        return "Daily"
    if "Monthly" in domain:
        return "Monthly"
    if "Reporting" in domain:
        return "On-demand / Scheduled"
    return "Scheduled"


class BusinessProcessAnalyzer:
    """Group programs and jobs into business processes"""

    def identify_processes(self, programs: Iterable[ProgramFacts],
                           jobs: Iterable[JclFacts]) -> List[BusinessProcess]:
        jobs = list(jobs)
        executed = jcl_executed_programs(jobs)
        groups: Dict[str, _ProcessGroup] = {}

        for program in programs:
            if program.is_empty:
                continue
            program_id = program_key(program)
            group = groups.setdefault(infer_domain(program_id, program), _ProcessGroup())

            online = program_id not in executed and program.processing_type in ("Online", "Interactive")
            group.types.add("ONLINE" if online else "BATCH")
            group.programs.append(program_id)

            has_db = bool(program.data_access)
            has_indexed = has_indexed_access(program)
            if has_db:
                group.relational_programs.append(program_id)
            if has_indexed:
                group.indexed_programs.append(program_id)
            if program.file_access and not has_db and not has_indexed:
                group.file_programs.append(program_id)
            for access in program.data_access:
                group.add_entity(access.entity.upper())

        for jcl in jobs:
            for job in jcl.jobs:
                group = groups.setdefault(infer_domain(job.job_name), _ProcessGroup())
                group.types.add("BATCH")
                group.jobs.append(job.job_name)
                for step in job.steps:
                    if not step.runs_proc and step.program_name not in group.programs:
                        group.programs.append(step.program_name)
                    for dd in step.dd_statements:
                        if not dd.dataset_name or dd.is_temporary:
                            continue
                        group.add_entity(dd.dataset_name)
                        if dd.dataset_type == "VSAM" and step.program_name not in group.indexed_programs:
                            group.indexed_programs.append(step.program_name)

        processes = [self._to_process(i, domain, group)
                     for i, (domain, group) in enumerate(groups.items(), start=1)]
        logger.info(f"Identified {len(processes)} business processes")
        return processes

    @staticmethod
    def _to_process(number: int, domain: str, group: _ProcessGroup) -> BusinessProcess:
        process_type = group.process_type
        programs = list(dict.fromkeys(group.programs))

        complexity = "LOW"
        if len(programs) > 5 or len(group.entities) > 5:
            complexity = "HIGH"
        elif len(programs) > 2 or len(group.entities) > 2:
            complexity = "MEDIUM"

        note = None
        if group.indexed_programs and group.relational_programs:
            note = (
                f"Dual implementation: indexed-file based ({', '.join(group.indexed_programs)}) "
                f"and relational ({', '.join(group.relational_programs)}). "
                f"Consider consolidating to a single access paradigm."
            )

        kind = {"BATCH": "batch processing", "ONLINE": "online transaction"}.get(process_type, "hybrid")
        return BusinessProcess(
            process_id=f"BP{number:03d}",
            process_name=domain,
            process_type=process_type,
            description=PROCESS_DESCRIPTION.get(domain, f"Handles {domain.lower()} through {kind} operations."),
            entry_points=group.jobs if process_type == "BATCH" else programs[:3],
            programs_involved=programs,
            entities_accessed=list(group.entities),
            trigger_type="SCHEDULED" if process_type == "BATCH" else "USER_INITIATED",
            frequency=_batch_frequency(domain) if process_type == "BATCH" else None,
            estimated_complexity=complexity,
            data_access_paradigm=data_access_paradigm(
                group.indexed_programs, group.relational_programs, group.file_programs),
            indexed_programs=list(group.indexed_programs),
            relational_programs=list(group.relational_programs),
            implementation_note=note,
        )

    def identify_entities(self, programs: Iterable[ProgramFacts]) -> List[BusinessEntity]:
        """Persistent business entities from relational table access"""
        entities: Dict[str, BusinessEntity] = {}

        for program in programs:
            program_id = program_key(program)
            for access in program.data_access:
                table = access.entity.upper()
                if is_technical_artifact(table):
                    continue
                entity = entities.get(table)
                if entity is None:
                    entity = BusinessEntity(
                        entity_id=table,
                        business_name=business_name(table),
                        entity_type=ENTITY_TYPE.evaluate(table),
                    )
                    entities[table] = entity
                for column in access.columns:
                    if column.upper() not in entity.columns:
                        entity.columns.append(column.upper())
                if program_id not in entity.used_by_programs:
                    entity.used_by_programs.append(program_id)
                kinds = entity.access_types.setdefault(program_id, [])
                if access.operation not in kinds:
                    kinds.append(access.operation)

        logger.info(f"Found {len(entities)} business entities")
        return list(entities.values())
