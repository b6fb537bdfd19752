"""
Project Analyzer

Runs the whole pipeline over a project:
1. Discover program, copybook and JCL sources
2. Extract per-file facts (one file at a time)
3. Build the cross-reference graph
4. Classify roles, business processes and platform dependencies
5. Score program and project complexity, estimate migration impact
"""

import json
import sys
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union
import logging

from tqdm import tqdm

from legacyxref.classification import (
    BusinessEntity,
    BusinessProcess,
    BusinessProcessAnalyzer,
    ComplexityScore,
    MigrationImpactEstimator,
    PlatformAnalyzer,
    PlatformDependencyAnalysis,
    ProgramComplexityScorer,
    ProjectComplexityScorer,
    RoleAssignment,
    RoleClassifier,
    collect_project_signals,
)
from legacyxref.classification.complexity_scorer import MigrationImpact, ProgramComplexityScore
from legacyxref.context import AnalysisContext
from legacyxref.discovery import discover_project
from legacyxref.jcl import JclFacts, JclParser
from legacyxref.static_analysis import ProgramAnalyzer, ProgramFacts
from legacyxref.xref import CrossReferenceBuilder, CrossReferenceGraph, generate_xref_report

logger = logging.getLogger(__name__)


@dataclass
class ProjectAnalysis:
    """Everything produced by one analysis run"""
    root: str
    programs: List[ProgramFacts] = field(default_factory=list)
    copybooks: List[str] = field(default_factory=list)
    jcl: List[JclFacts] = field(default_factory=list)
    xref: CrossReferenceGraph = field(default_factory=CrossReferenceGraph)
    roles: List[RoleAssignment] = field(default_factory=list)
    processes: List[BusinessProcess] = field(default_factory=list)
    entities: List[BusinessEntity] = field(default_factory=list)
    platform: Optional[PlatformDependencyAnalysis] = None
    program_scores: List[ProgramComplexityScore] = field(default_factory=list)
    project_score: Optional[ComplexityScore] = None
    migration_impact: Optional[MigrationImpact] = None
    context: AnalysisContext = field(default_factory=AnalysisContext, repr=False)

    @property
    def total_lines(self) -> int:
        return sum(p.metrics.total_lines for p in self.programs)

    def to_dict(self) -> Dict[str, Any]:
        def plain(value):
            return asdict(value) if value is not None else None

        return {
            "root": self.root,
            "inventory": {
                "programs": len(self.programs),
                "copybooks": len(self.copybooks),
                "jcl_members": len(self.jcl),
                "total_lines": self.total_lines,
                "skipped_files": list(self.context.skipped_files),
            },
            "programs": [p.to_dict() for p in self.programs],
            "copybooks": list(self.copybooks),
            "jcl": [j.to_dict() for j in self.jcl],
            "cross_references": self.xref.to_dict(),
            "program_roles": [asdict(r) for r in self.roles],
            "business_processes": [asdict(p) for p in self.processes],
            "business_entities": [asdict(e) for e in self.entities],
            "platform_dependencies": plain(self.platform),
            "program_scores": [asdict(s) for s in self.program_scores],
            "complexity": plain(self.project_score),
            "migration_impact": plain(self.migration_impact),
            "anomalies": [a.to_dict() for a in self.context.anomalies],
        }

    def save(self, output_path: Union[str, Path]) -> Path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Saved analysis to {output_path}")
        return output_path


class ProjectAnalyzer:
    """Analyze a directory (or an explicit file list) end to end"""

    def __init__(self, config: Optional[Dict[str, Any]] = None, show_progress: Optional[bool] = None):
        self.context_config = config
        self.show_progress = sys.stderr.isatty() if show_progress is None else show_progress
        self.program_analyzer = ProgramAnalyzer()
        self.jcl_parser = JclParser()
        self.xref_builder = CrossReferenceBuilder()

    def _new_context(self) -> AnalysisContext:
        if self.context_config is None:
            return AnalysisContext()
        return AnalysisContext(config=self.context_config)

    def analyze_directory(self, root: Union[str, Path]) -> ProjectAnalysis:
        """
        Analyze every recognised source under root.

        Args:
            root: Project directory

        Returns:
            ProjectAnalysis for the run
        """
        context = self._new_context()
        grouped = discover_project(root, context.config["source_extensions"])
        return self.analyze_files(
            programs=grouped.get("program", []),
            copybooks=grouped.get("copybook", []),
            jcl=grouped.get("jcl", []),
            root=str(root),
            context=context,
        )

    def analyze_files(self, programs: Iterable[Union[str, Path]] = (),
                      copybooks: Iterable[Union[str, Path]] = (),
                      jcl: Iterable[Union[str, Path]] = (),
                      root: str = "",
                      context: Optional[AnalysisContext] = None) -> ProjectAnalysis:
        context = context or self._new_context()
        analysis = ProjectAnalysis(root=root, context=context)

        for path in tqdm(list(programs), desc="Programs", unit="file", disable=not self.show_progress):
            analysis.programs.append(self.program_analyzer.analyze_file(path, context))

        for path in tqdm(list(jcl), desc="JCL", unit="file", disable=not self.show_progress):
            analysis.jcl.append(self.jcl_parser.parse_file(path, context))

        analysis.copybooks = [Path(p).stem.upper() for p in copybooks]

        self.classify(analysis)
        return analysis

    def classify(self, analysis: ProjectAnalysis) -> ProjectAnalysis:
        """Run the graph, classification and scoring stages on extracted facts"""
        config = analysis.context.config
        programs = [p for p in analysis.programs if not p.is_empty]

        analysis.xref = self.xref_builder.build(programs, analysis.jcl, analysis.copybooks)
        analysis.roles = RoleClassifier().classify(programs, analysis.jcl, analysis.xref)

        process_analyzer = BusinessProcessAnalyzer()
        analysis.processes = process_analyzer.identify_processes(programs, analysis.jcl)
        analysis.entities = process_analyzer.identify_entities(programs)
        analysis.platform = PlatformAnalyzer(config).analyze(programs)

        signals = collect_project_signals(programs, analysis.jcl, analysis.platform, analysis.entities)
        analysis.program_scores = ProgramComplexityScorer(config).score_all(programs)
        analysis.project_score = ProjectComplexityScorer(config).score(
            programs, analysis.jcl, analysis.xref, analysis.platform, analysis.entities, signals
        )
        analysis.migration_impact = MigrationImpactEstimator(config).estimate(
            programs, analysis.xref, analysis.project_score, signals, analysis.platform
        )

        logger.info(
            f"Analyzed {len(programs)} programs, {len(analysis.jcl)} JCL members, "
            f"{len(analysis.copybooks)} copybooks: {analysis.project_score.tier}"
        )
        return analysis


def generate_summary_report(analysis: ProjectAnalysis) -> str:
    """Generate human-readable summary of a project analysis"""
    score = analysis.project_score
    report_lines = [
        "=" * 70,
        "LEGACY PROJECT ANALYSIS",
        "=" * 70,
        "",
        f"Root: {analysis.root}",
        f"Programs: {len(analysis.programs)}",
        f"Copybooks: {len(analysis.copybooks)}",
        f"JCL Members: {len(analysis.jcl)}",
        f"Total Lines: {analysis.total_lines}",
        f"Skipped Files: {len(analysis.context.skipped_files)}",
        f"Anomalies: {len(analysis.context.anomalies)}",
        "",
    ]

    if score is not None:
        report_lines.append("MIGRATION COMPLEXITY:")
        report_lines.append(f"  Overall: {score.overall} ({score.tier})")
        if score.tier != score.tier_before_floors:
            report_lines.append(f"  Tier before floors: {score.tier_before_floors}")
        for dimension, value in score.sub_scores.items():
            report_lines.append(f"  {dimension:25s}: {value:3d}")
        for reason in score.floor_reasons:
            report_lines.append(f"  Floor: {reason}")
        report_lines.append("")

    if analysis.platform is not None:
        report_lines.extend([
            "PLATFORM:",
            f"  Platform: {analysis.platform.platform}",
            f"  Portability Score: {analysis.platform.portability_score}",
            "",
        ])

    if analysis.roles:
        report_lines.append("PROGRAM ROLES:")
        for role in analysis.roles:
            report_lines.append(f"  {role.program_id:12s} {role.role:24s} {role.confidence:.2f}")
        report_lines.append("")

    if analysis.processes:
        report_lines.append("BUSINESS PROCESSES:")
        for process in analysis.processes:
            report_lines.append(
                f"  {process.process_id} {process.process_name} ({process.process_type}, "
                f"{len(process.programs_involved)} programs)"
            )
        report_lines.append("")

    impact = analysis.migration_impact
    if impact is not None:
        report_lines.extend([
            "MIGRATION IMPACT:",
            f"  Low/Medium/High programs: {impact.low_complexity}/"
            f"{impact.medium_complexity}/{impact.high_complexity}",
            f"  Estimated program-days: {impact.estimated_program_days}",
            f"  Risks: {', '.join(r.risk_id for r in impact.risks) or 'none'}",
            "",
        ])

    report_lines.append(generate_xref_report(analysis.xref))
    return "\n".join(report_lines)
