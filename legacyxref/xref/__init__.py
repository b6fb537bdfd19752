"""Cross-Reference Graph

Project-wide links between programs, copybooks, jobs, datasets and
entities, built after every file has been extracted.
"""

from .graph_builder import (
    CrossReferenceBuilder,
    build_perform_graph,
    graph_leaves,
    graph_roots,
    program_key,
)
from .models import CrossReferenceGraph, CallGraphNode, EntityAccessRecord
from .report import generate_xref_report

__all__ = [
    "CrossReferenceBuilder",
    "CrossReferenceGraph",
    "CallGraphNode",
    "EntityAccessRecord",
    "build_perform_graph",
    "graph_roots",
    "graph_leaves",
    "program_key",
    "generate_xref_report",
]
