"""Plain-text summary of a cross-reference graph"""

from .models import CrossReferenceGraph


def generate_xref_report(xref: CrossReferenceGraph, max_items: int = 20) -> str:
    """Generate human-readable summary of cross references"""
    stats = xref.statistics
    report_lines = [
        "=" * 70,
        "CROSS-REFERENCE SUMMARY",
        "=" * 70,
        "",
        "STATISTICS:",
        f"  Programs: {stats.total_programs}",
        f"  Copybooks: {stats.total_copybooks}",
        f"  JCL Jobs: {stats.total_jcl_jobs}",
        f"  Entities: {stats.total_entities}",
        f"  Call Relationships: {stats.total_call_relationships}",
        f"  Avg Copybooks/Program: {stats.average_copybooks_per_program:.2f}",
        f"  Avg Calls/Program: {stats.average_calls_per_program:.2f}",
        f"  Max Call Depth: {stats.max_call_depth}",
        "",
    ]

    external = [n.program_id for n in xref.nodes.values() if n.node_type == "EXTERNAL"]
    sections = [
        ("ROOT PROGRAMS", xref.roots),
        ("EXTERNAL PROGRAMS", external),
        ("ORPHANED COPYBOOKS", xref.orphaned_copybooks),
        ("UNREFERENCED PROGRAMS", xref.unreferenced_programs),
    ]
    for title, names in sections:
        if not names:
            continue
        report_lines.append(f"{title} ({len(names)}):")
        report_lines.extend(f"  - {name}" for name in names[:max_items])
        if len(names) > max_items:
            report_lines.append(f"  ... and {len(names) - max_items} more")
        report_lines.append("")

    if xref.entity_to_programs:
        report_lines.append("ENTITY ACCESS:")
        for entity, records in list(xref.entity_to_programs.items())[:max_items]:
            users = ", ".join(f"{r.program_id} ({r.access_type})" for r in records)
            report_lines.append(f"  {entity:30s}: {users}")
        report_lines.append("")

    report_lines.append("=" * 70)
    return "\n".join(report_lines)
