"""Cross-reference graph models"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

import networkx as nx

# Entity access kinds
READ = "READ"
WRITE = "WRITE"
UPDATE = "UPDATE"
DELETE = "DELETE"
MIXED = "MIXED"


@dataclass
class CallGraphNode:
    """One program in the call graph, analyzed or only referenced"""
    program_id: str
    node_type: str = "ANALYZED"     # ANALYZED, EXTERNAL
    source_path: Optional[str] = None
    calls: List[str] = field(default_factory=list)
    called_by: List[str] = field(default_factory=list)
    call_count: int = 0
    caller_count: int = 0


@dataclass
class CallEdge:
    caller: str
    callee: str
    call_type: str                  # STATIC, DYNAMIC
    line_number: int
    paragraph: str = ""


@dataclass
class JobProgramReference:
    """A job step that runs a program"""
    job_name: str
    step_name: str
    execution_order: int
    input_datasets: List[str] = field(default_factory=list)
    output_datasets: List[str] = field(default_factory=list)
    parameters: Optional[str] = None


@dataclass
class EntityAccessRecord:
    """
    How one program uses one entity (table or file).

    access_type starts as the first kind seen and becomes MIXED as soon as
    a different kind is recorded. It never leaves MIXED.
    """
    entity: str
    program_id: str
    access_type: str
    access_count: int = 0
    paragraphs: List[str] = field(default_factory=list)
    source: str = "TABLE"           # TABLE, FILE

    def record(self, access_type: str, paragraph: str = "", count: int = 1) -> None:
        self.access_count += count
        if paragraph and paragraph not in self.paragraphs:
            self.paragraphs.append(paragraph)
        if access_type != self.access_type:
            self.access_type = MIXED


@dataclass
class DatasetProgramReference:
    program_id: str
    access_mode: str
    jcl_steps: List[str] = field(default_factory=list)


@dataclass
class CrossReferenceStatistics:
    total_programs: int = 0
    total_copybooks: int = 0
    total_jcl_jobs: int = 0
    total_entities: int = 0
    total_call_relationships: int = 0
    average_copybooks_per_program: float = 0.0
    average_calls_per_program: float = 0.0
    max_call_depth: int = 0


@dataclass
class CrossReferenceGraph:
    """
    Project-wide cross references.

    nodes is the flat program_id -> node map; edges keeps one record per
    distinct (caller, callee, line). graph is a networkx view of the same
    call relationships for traversal.
    """
    program_to_copybooks: Dict[str, List[str]] = field(default_factory=dict)
    copybook_to_programs: Dict[str, List[str]] = field(default_factory=dict)
    nodes: Dict[str, CallGraphNode] = field(default_factory=dict)
    edges: List[CallEdge] = field(default_factory=list)
    roots: List[str] = field(default_factory=list)
    leaves: List[str] = field(default_factory=list)
    program_to_jobs: Dict[str, List[JobProgramReference]] = field(default_factory=dict)
    job_to_programs: Dict[str, List[str]] = field(default_factory=dict)
    dataset_to_programs: Dict[str, List[DatasetProgramReference]] = field(default_factory=dict)
    entity_to_programs: Dict[str, List[EntityAccessRecord]] = field(default_factory=dict)
    program_to_entities: Dict[str, List[str]] = field(default_factory=dict)
    statistics: CrossReferenceStatistics = field(default_factory=CrossReferenceStatistics)
    orphaned_copybooks: List[str] = field(default_factory=list)
    unreferenced_programs: List[str] = field(default_factory=list)
    graph: nx.DiGraph = field(default_factory=nx.DiGraph, repr=False, compare=False)

    def node(self, program_id: str) -> Optional[CallGraphNode]:
        return self.nodes.get(program_id)

    def entity_record(self, entity: str, program_id: str) -> Optional[EntityAccessRecord]:
        for record in self.entity_to_programs.get(entity, []):
            if record.program_id == program_id:
                return record
        return None

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        for name in self.__dataclass_fields__:
            if name == "graph":
                continue
            data[name] = _plain(getattr(self, name))
        return data


def _plain(value):
    if hasattr(value, "__dataclass_fields__"):
        return asdict(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value
