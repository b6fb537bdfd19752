"""Cross-Reference Graph Builder

Links the per-file facts into one project view:
- Programs <-> copybooks
- Programs -> programs (call graph, with EXTERNAL nodes for callees that
  were not analyzed)
- Jobs -> programs and datasets -> programs (from JCL)
- Entities (tables and files) -> programs, with access-type promotion
"""

from typing import Dict, Iterable, List, Optional, Set
import logging

import networkx as nx

from legacyxref.jcl.models import JclFacts, is_temporary_dataset
from legacyxref.static_analysis.models import Paragraph, ProgramFacts
from .models import (
    MIXED,
    READ,
    UPDATE,
    WRITE,
    DELETE,
    CallEdge,
    CallGraphNode,
    CrossReferenceGraph,
    CrossReferenceStatistics,
    DatasetProgramReference,
    EntityAccessRecord,
    JobProgramReference,
)

logger = logging.getLogger(__name__)

SQL_ACCESS_TYPE = {
    "SELECT": READ,
    "INSERT": WRITE,
    "UPDATE": UPDATE,
    "DELETE": DELETE,
}

FILE_ACCESS_TYPE = {
    "INPUT": READ,
    "OUTPUT": WRITE,
    "EXTEND": WRITE,
    "I-O": MIXED,
}


def program_key(program: ProgramFacts) -> str:
    """Program id, or the file stem when no PROGRAM-ID was found"""
    if program.program_id and program.program_id != "UNKNOWN":
        return program.program_id.upper()
    stem = program.source_path.replace('\\', '/').rsplit('/', 1)[-1].rsplit('.', 1)[0]
    return stem.upper() or "UNKNOWN"


class CrossReferenceBuilder:
    """
    Build a CrossReferenceGraph from extracted facts.

    Nothing here rejects input: an unknown callee becomes an EXTERNAL node
    and a missing copybook source is simply never marked as declared.
    """

    def build(self, programs: Iterable[ProgramFacts], jobs: Iterable[JclFacts],
              copybooks: Optional[Iterable[str]] = None) -> CrossReferenceGraph:
        """
        Build cross references.

        Args:
            programs: Per-program facts
            jobs: Per-JCL-member facts
            copybooks: Names of copybook sources present in the project

        Returns:
            CrossReferenceGraph with statistics filled in
        """
        programs = [p for p in programs if not p.is_empty]
        jobs = list(jobs)
        declared_copybooks = [c.upper() for c in (copybooks or [])]

        xref = CrossReferenceGraph()
        self._build_copybook_references(programs, xref)
        self._build_call_graph(programs, xref)
        self._build_job_references(jobs, xref)
        self._build_entity_references(programs, xref)
        self._build_dataset_references(jobs, xref)

        xref.orphaned_copybooks = [
            name for name in dict.fromkeys(declared_copybooks)
            if not xref.copybook_to_programs.get(name)
        ]
        xref.unreferenced_programs = self._find_unreferenced(programs, jobs, xref)
        xref.statistics = self._calculate_statistics(programs, jobs, declared_copybooks, xref)

        logger.info(
            f"Cross-reference built: {len(xref.nodes)} nodes, {len(xref.edges)} call edges, "
            f"{len(xref.entity_to_programs)} entities"
        )
        return xref

    def _build_copybook_references(self, programs: List[ProgramFacts],
                                   xref: CrossReferenceGraph) -> None:
        for program in programs:
            program_id = program_key(program)
            used = xref.program_to_copybooks.setdefault(program_id, [])
            for name in program.copybook_names:
                name = name.upper()
                if name not in used:
                    used.append(name)
                users = xref.copybook_to_programs.setdefault(name, [])
                if program_id not in users:
                    users.append(program_id)

    def _build_call_graph(self, programs: List[ProgramFacts], xref: CrossReferenceGraph) -> None:
        graph = xref.graph
        seen_edges: Set = set()

        for program in programs:
            program_id = program_key(program)
            if program_id not in xref.nodes:
                xref.nodes[program_id] = CallGraphNode(program_id=program_id,
                                                       source_path=program.source_path)
                graph.add_node(program_id, node_type="ANALYZED")

        for program in programs:
            caller = program_key(program)
            for call in program.external_calls:
                callee = call.program_name.upper()
                key = (caller, callee, call.line_number)
                if key in seen_edges:
                    continue
                seen_edges.add(key)

                if callee not in xref.nodes:
                    xref.nodes[callee] = CallGraphNode(program_id=callee, node_type="EXTERNAL")
                    graph.add_node(callee, node_type="EXTERNAL")

                call_type = "DYNAMIC" if call.is_dynamic or 'WS-' in callee else "STATIC"
                xref.edges.append(CallEdge(
                    caller=caller,
                    callee=callee,
                    call_type=call_type,
                    line_number=call.line_number,
                    paragraph=call.paragraph,
                ))

                caller_node, callee_node = xref.nodes[caller], xref.nodes[callee]
                caller_node.call_count += 1
                if callee not in caller_node.calls:
                    caller_node.calls.append(callee)
                if caller not in callee_node.called_by:
                    callee_node.called_by.append(caller)
                    callee_node.caller_count += 1

                if graph.has_edge(caller, callee):
                    graph[caller][callee]["lines"].append(call.line_number)
                else:
                    graph.add_edge(caller, callee, call_type=call_type, lines=[call.line_number])

        xref.roots = graph_roots(graph)
        xref.leaves = graph_leaves(graph)

    def _build_job_references(self, jobs: List[JclFacts], xref: CrossReferenceGraph) -> None:
        for jcl in jobs:
            for execution in jcl.program_executions:
                program = execution.program_name.upper()
                xref.program_to_jobs.setdefault(program, []).append(JobProgramReference(
                    job_name=execution.job_name,
                    step_name=execution.step_name,
                    execution_order=execution.execution_order,
                    input_datasets=[d for d in execution.input_datasets if not is_temporary_dataset(d)],
                    output_datasets=[d for d in execution.output_datasets if not is_temporary_dataset(d)],
                    parameters=execution.parameters,
                ))
                run = xref.job_to_programs.setdefault(execution.job_name, [])
                if program not in run:
                    run.append(program)

    def _build_entity_references(self, programs: List[ProgramFacts],
                                 xref: CrossReferenceGraph) -> None:
        for program in programs:
            program_id = program_key(program)
            entities = xref.program_to_entities.setdefault(program_id, [])

            for access in program.data_access:
                entity = access.entity.upper()
                self._record(xref, entity, program_id, SQL_ACCESS_TYPE.get(access.operation, MIXED),
                             access.paragraph, 1, "TABLE")
                if entity not in entities:
                    entities.append(entity)

            for file in program.file_access:
                entity = (file.external_name or file.handle).upper()
                self._record(xref, entity, program_id, FILE_ACCESS_TYPE.get(file.access_mode, READ),
                             "", len(file.operations) or 1, "FILE")
                if entity not in entities:
                    entities.append(entity)

    @staticmethod
    def _record(xref: CrossReferenceGraph, entity: str, program_id: str, access_type: str,
                paragraph: str, count: int, source: str) -> None:
        record = xref.entity_record(entity, program_id)
        if record is None:
            record = EntityAccessRecord(entity=entity, program_id=program_id,
                                        access_type=access_type, source=source)
            xref.entity_to_programs.setdefault(entity, []).append(record)
        record.record(access_type, paragraph, count)

    def _build_dataset_references(self, jobs: List[JclFacts], xref: CrossReferenceGraph) -> None:
        for jcl in jobs:
            for ref in jcl.dataset_references:
                refs = xref.dataset_to_programs.setdefault(ref.dataset_name, [])
                for program in ref.used_by_programs:
                    refs.append(DatasetProgramReference(
                        program_id=program.upper(),
                        access_mode=ref.access_mode,
                        jcl_steps=list(ref.used_in_steps),
                    ))

    @staticmethod
    def _find_unreferenced(programs: List[ProgramFacts], jobs: List[JclFacts],
                           xref: CrossReferenceGraph) -> List[str]:
        # Procedure steps count as JCL-run even though program_to_jobs holds job steps only
        called = {edge.callee for edge in xref.edges}
        executed = {name for jcl in jobs for name in jcl.executed_programs}
        unreferenced = []
        for program in programs:
            program_id = program_key(program)
            if program_id not in called and program_id not in executed \
                    and program_id not in unreferenced:
                unreferenced.append(program_id)
        return unreferenced

    def _calculate_statistics(self, programs: List[ProgramFacts], jobs: List[JclFacts],
                              declared_copybooks: List[str],
                              xref: CrossReferenceGraph) -> CrossReferenceStatistics:
        total_programs = len(xref.program_to_copybooks)
        copybook_uses = sum(len(c) for c in xref.program_to_copybooks.values())
        total_calls = sum(node.call_count for node in xref.nodes.values())

        return CrossReferenceStatistics(
            total_programs=total_programs,
            total_copybooks=len(set(declared_copybooks)),
            total_jcl_jobs=sum(len(jcl.jobs) for jcl in jobs),
            total_entities=len(xref.entity_to_programs),
            total_call_relationships=len(xref.edges),
            average_copybooks_per_program=round(copybook_uses / total_programs, 2) if total_programs else 0.0,
            average_calls_per_program=round(total_calls / total_programs, 2) if total_programs else 0.0,
            max_call_depth=self.max_call_depth(xref),
        )

    @staticmethod
    def max_call_depth(xref: CrossReferenceGraph) -> int:
        """
        Longest call chain from any root.

        Memoized DFS; a node already on the current path counts as depth 0,
        so cycles terminate (and may under-count).
        """
        graph = xref.graph
        depths: Dict[str, int] = {}

        def depth_of(node: str, path: Set[str]) -> int:
            if node in path:
                return 0
            if node in depths:
                return depths[node]
            path.add(node)
            children = [depth_of(child, path) for child in graph.successors(node)]
            path.discard(node)
            depths[node] = max(children) + 1 if children else 0
            return depths[node]

        return max((depth_of(root, set()) for root in xref.roots), default=0)


def call_graph_is_acyclic(xref: CrossReferenceGraph) -> bool:
    return nx.is_directed_acyclic_graph(xref.graph)


def build_perform_graph(paragraphs: Iterable[Paragraph]) -> nx.DiGraph:
    """
    Paragraph-level PERFORM graph for one program.

    Nodes carry line_start/line_end; PERFORM targets that are not
    paragraphs of the program are left out.
    """
    graph = nx.DiGraph()
    paragraphs = list(paragraphs)
    for para in paragraphs:
        if para.name not in graph:
            graph.add_node(para.name, line_start=para.line_start, line_end=para.line_end)
    for para in paragraphs:
        for target in para.performs:
            if target in graph:
                graph.add_edge(para.name, target)
    return graph


def graph_roots(graph: nx.DiGraph) -> List[str]:
    return [n for n in graph.nodes if graph.in_degree(n) == 0]


def graph_leaves(graph: nx.DiGraph) -> List[str]:
    return [n for n in graph.nodes if graph.out_degree(n) == 0]
