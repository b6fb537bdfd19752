"""
Migration Complexity Scoring

Program level: logic / data / COBOL-specific risk triad.
Project level: six weighted dimensions followed by a floor pass.

Every dimension is built from capped additive factors
(score += min(count x weight, cap)) and clamped to [0, 100]. Floors can
only raise the tier computed from the weighted score; each applied floor
records its reason.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional
import logging

from legacyxref.config import get_config
from legacyxref.jcl.models import JclFacts
from legacyxref.static_analysis.models import ProgramFacts
from legacyxref.xref.graph_builder import program_key
from legacyxref.xref.models import MIXED, CrossReferenceGraph
from .business_process import BusinessEntity
from .platform_analyzer import PlatformDependencyAnalysis
from .role_classifier import has_indexed_access, jcl_executed_programs

logger = logging.getLogger(__name__)


class DifficultyTier(Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    VERY_HIGH = "Very High"

    @property
    def rank(self) -> int:
        return list(DifficultyTier).index(self)


TIER_DESCRIPTIONS = {
    DifficultyTier.LOW: "Low migration difficulty - straightforward conversion with minimal refactoring",
    DifficultyTier.MEDIUM: "Medium migration difficulty - moderate refactoring, standard migration patterns apply",
    DifficultyTier.HIGH: "High migration difficulty - significant redesign, complex legacy patterns present",
    DifficultyTier.VERY_HIGH: "Very high migration difficulty - extensive redesign, critical COBOL-specific features",
}


def tier_for(score: float, thresholds: Dict[str, float]) -> DifficultyTier:
    if score < thresholds["low"]:
        return DifficultyTier.LOW
    if score < thresholds["medium"]:
        return DifficultyTier.MEDIUM
    if score < thresholds["high"]:
        return DifficultyTier.HIGH
    return DifficultyTier.VERY_HIGH


def raise_tier(current: DifficultyTier, floor: DifficultyTier) -> DifficultyTier:
    """The higher of two tiers"""
    return floor if floor.rank > current.rank else current


def clamp(score: float) -> int:
    return int(min(max(round(score), 0), 100))


def score_dimension(counts: Dict[str, float], factors: Dict[str, Dict[str, float]],
                    labels: Optional[Dict[str, str]] = None):
    """
    Sum capped factor contributions.

    Returns:
        (score clamped to [0, 100], list of factor descriptions)
    """
    score = 0.0
    notes = []
    for name, factor in factors.items():
        count = counts.get(name, 0)
        if not count:
            continue
        points = min(count * factor["weight"], factor["cap"])
        score += points
        label = (labels or {}).get(name, name.replace("_", " "))
        notes.append(f"{label}: {round(count, 2)} (+{round(points, 1)})")
    return clamp(score), notes


# ===========================================
# Program triad
# ===========================================

@dataclass
class ProgramComplexityScore:
    program_id: str
    overall: int
    logic: int
    data: int
    risk: int
    tier: str
    description: str
    details: Dict[str, List[str]] = field(default_factory=dict)


class ProgramComplexityScorer:
    """Logic / data / COBOL-risk score for one program"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or get_config()
        self.weights = self.config["program_score_weights"]
        self.factors = self.config["program_score_factors"]
        self.nested_if_bands = self.config["nested_if_bands"]
        self.thresholds = self.config["tier_thresholds"]

    def score(self, program: ProgramFacts) -> ProgramComplexityScore:
        metrics = program.metrics
        flow = program.control_flow
        loc = max(metrics.code_lines, 1)

        logic, logic_notes = score_dimension({
            "cyclomatic_density": flow.cyclomatic / loc * 100,
            "goto": flow.goto_count,
            "evaluate": flow.evaluate_count,
        }, self.factors["logic"])
        nesting = self._nesting_points(flow.max_if_depth)
        if nesting:
            logic = clamp(logic + nesting)
            logic_notes.append(f"nested IF depth: {flow.max_if_depth} (+{nesting})")

        data, data_notes = score_dimension({
            "copybook": metrics.copybook_count,
            "sql_density": metrics.sql_statement_count / loc * 100,
            "file_operation": metrics.file_operation_count,
            "occurs": metrics.occurs_count,
            "redefines": metrics.redefines_count,
        }, self.factors["data"])

        risk, risk_notes = score_dimension({
            "packed_decimal": metrics.packed_decimal_count,
            "assembler_call": metrics.assembler_call_count,
            "complex_picture": metrics.complex_picture_count,
            "sort_merge": metrics.sort_merge_count,
            "report_writer": 1 if metrics.uses_report_writer else 0,
        }, self.factors["risk"])

        overall = clamp(
            logic * self.weights["logic"] + data * self.weights["data"] + risk * self.weights["risk"]
        )
        tier = tier_for(overall, self.thresholds)
        return ProgramComplexityScore(
            program_id=program_key(program),
            overall=overall,
            logic=logic,
            data=data,
            risk=risk,
            tier=tier.value,
            description=TIER_DESCRIPTIONS[tier],
            details={"logic": logic_notes, "data": data_notes, "risk": risk_notes},
        )

    def score_all(self, programs: Iterable[ProgramFacts]) -> List[ProgramComplexityScore]:
        return [self.score(p) for p in programs if not p.is_empty]

    def _nesting_points(self, depth: int) -> int:
        for threshold, points in self.nested_if_bands:
            if depth > threshold:
                return points
        return 0


# ===========================================
# Project score
# ===========================================

@dataclass
class ComplexityScore:
    """Six-dimension project score with the floor pass applied"""
    overall: int
    sub_scores: Dict[str, int]
    tier_before_floors: str
    tier: str
    description: str
    factors: Dict[str, List[str]] = field(default_factory=dict)
    floor_reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ProjectSignals:
    """System-level conditions the floor rules and risk list look at"""
    program_count: int = 0
    has_indexed_access: bool = False
    has_relational_access: bool = False
    has_interactive: bool = False
    has_scheduled: bool = False
    longest_job: str = ""
    longest_job_steps: int = 0
    master_entities: int = 0
    high_risk_features: int = 0
    portability_score: int = 100


def collect_project_signals(programs: List[ProgramFacts], jobs: List[JclFacts],
                            platform: Optional[PlatformDependencyAnalysis] = None,
                            entities: Optional[List[BusinessEntity]] = None) -> ProjectSignals:
    executed = jcl_executed_programs(jobs)
    signals = ProjectSignals(program_count=len(programs))

    for program in programs:
        if has_indexed_access(program):
            signals.has_indexed_access = True
        if program.data_access:
            signals.has_relational_access = True
        if program_key(program) in executed or program.processing_type == "Batch":
            signals.has_scheduled = True
        elif program.processing_type in ("Online", "Interactive"):
            signals.has_interactive = True

    for jcl in jobs:
        for job in jcl.jobs:
            signals.has_scheduled = True
            if len(job.steps) > signals.longest_job_steps:
                signals.longest_job, signals.longest_job_steps = job.job_name, len(job.steps)
            if any(dd.dataset_type == "VSAM" for step in job.steps for dd in step.dd_statements):
                signals.has_indexed_access = True

    if platform is not None:
        signals.high_risk_features = len(platform.high_risk_features)
        signals.portability_score = platform.portability_score
        if any("VSAM" in f.feature for f in platform.ibm_specific):
            signals.has_indexed_access = True
    if entities:
        signals.master_entities = sum(1 for e in entities if e.entity_type == "MASTER")
    return signals


@dataclass(frozen=True)
class FloorRule:
    """Raise the tier to at least `floor` when the predicate holds"""
    name: str
    floor: DifficultyTier
    predicate: Callable[[ProjectSignals, Dict[str, float]], bool]
    reason: Callable[[ProjectSignals], str]


FLOOR_RULES = [
    FloorRule(
        "mixed_access_paradigms", DifficultyTier.MEDIUM,
        lambda s, t: s.has_indexed_access and s.has_relational_access,
        lambda s: "System uses both indexed-file and relational data access",
    ),
    FloorRule(
        "online_and_batch", DifficultyTier.MEDIUM,
        lambda s, t: s.has_interactive and s.has_scheduled,
        lambda s: "System has both interactive and scheduled processing modes",
    ),
    FloorRule(
        "job_chains", DifficultyTier.MEDIUM,
        lambda s, t: s.longest_job_steps > t["job_chain_steps"],
        lambda s: f"Multi-step job chain ({s.longest_job}: {s.longest_job_steps} steps)",
    ),
    FloorRule(
        "master_entities", DifficultyTier.MEDIUM,
        lambda s, t: s.master_entities > t["master_entities"],
        lambda s: f"System manages {s.master_entities} master data entities",
    ),
    FloorRule(
        "high_risk_features", DifficultyTier.MEDIUM,
        lambda s, t: s.high_risk_features >= t["high_risk_features_medium"],
        lambda s: f"System uses {s.high_risk_features} high-risk platform features",
    ),
    FloorRule(
        "high_risk_features_severe", DifficultyTier.HIGH,
        lambda s, t: s.high_risk_features >= t["high_risk_features_high"],
        lambda s: f"{s.high_risk_features} high-risk platform dependencies require significant rework",
    ),
    FloorRule(
        "low_portability", DifficultyTier.MEDIUM,
        lambda s, t: s.portability_score < t["portability_medium"],
        lambda s: f"Low portability score ({s.portability_score}%)",
    ),
    FloorRule(
        "very_low_portability", DifficultyTier.HIGH,
        lambda s, t: s.portability_score < t["portability_high"],
        lambda s: f"Very low portability score ({s.portability_score}%)",
    ),
    FloorRule(
        "large_system", DifficultyTier.MEDIUM,
        lambda s, t: s.program_count > t["programs_medium"],
        lambda s: f"Large system with {s.program_count} programs",
    ),
    FloorRule(
        "very_large_system", DifficultyTier.HIGH,
        lambda s, t: s.program_count > t["programs_high"],
        lambda s: f"Very large system with {s.program_count} programs",
    ),
]


def apply_floors(tier: DifficultyTier, signals: ProjectSignals,
                 thresholds: Dict[str, float], rules: Iterable[FloorRule] = FLOOR_RULES):
    """
    Apply every floor rule in order.

    Returns:
        (tier after floors, reasons for every rule that fired)
    """
    reasons = []
    for rule in rules:
        if rule.predicate(signals, thresholds):
            tier = raise_tier(tier, rule.floor)
            reasons.append(rule.reason(signals))
    return tier, reasons


class ProjectComplexityScorer:
    """Six-dimension migration complexity for a whole project"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or get_config()
        self.weights = self.config["project_score_weights"]
        self.factors = self.config["project_score_factors"]
        self.thresholds = self.config["tier_thresholds"]
        self.floor_thresholds = self.config["floor_thresholds"]

    def score(self, programs: Iterable[ProgramFacts], jobs: Iterable[JclFacts],
              xref: CrossReferenceGraph,
              platform: Optional[PlatformDependencyAnalysis] = None,
              entities: Optional[List[BusinessEntity]] = None,
              signals: Optional[ProjectSignals] = None) -> ComplexityScore:
        programs = [p for p in programs if not p.is_empty]
        jobs = list(jobs)
        if signals is None:
            signals = collect_project_signals(programs, jobs, platform, entities)

        counts = self.dimension_counts(programs, jobs, xref, platform)
        sub_scores: Dict[str, int] = {}
        factors: Dict[str, List[str]] = {}
        for dimension, table in self.factors.items():
            sub_scores[dimension], factors[dimension] = score_dimension(counts.get(dimension, {}), table)

        total_weight = sum(self.weights.values()) or 1
        overall = clamp(
            sum(sub_scores.get(d, 0) * w for d, w in self.weights.items()) / total_weight
        )

        before = tier_for(overall, self.thresholds)
        after, reasons = apply_floors(before, signals, self.floor_thresholds)
        if reasons:
            factors["floors"] = reasons

        logger.info(
            f"Project complexity {overall} ({before.value}"
            + (f" -> {after.value} after floors" if after is not before else "") + ")"
        )
        return ComplexityScore(
            overall=overall,
            sub_scores=sub_scores,
            tier_before_floors=before.value,
            tier=after.value,
            description=TIER_DESCRIPTIONS[after],
            factors=factors,
            floor_reasons=reasons,
        )

    @staticmethod
    def dimension_counts(programs: List[ProgramFacts], jobs: List[JclFacts],
                         xref: CrossReferenceGraph,
                         platform: Optional[PlatformDependencyAnalysis]) -> Dict[str, Dict[str, float]]:
        """Raw counts per dimension and factor"""

        def total(getter) -> int:
            return sum(getter(p) for p in programs)

        code_lines = max(total(lambda p: p.metrics.code_lines), 1)
        steps = [s for jcl in jobs for job in jcl.jobs for s in job.steps]
        datasets = [dd for s in steps for dd in s.dd_statements if dd.dataset_name and not dd.is_temporary]
        tables = {e for e, records in xref.entity_to_programs.items() if records and records[0].source == "TABLE"}
        indexed_files = {
            e for e, records in xref.entity_to_programs.items()
            if any(r.source == "FILE" and r.access_type == MIXED for r in records)
        }

        return {
            "data_structure": {
                "packed_decimal": total(lambda p: p.metrics.packed_decimal_count),
                "redefines": total(lambda p: p.metrics.redefines_count),
                "occurs": total(lambda p: p.metrics.occurs_count),
                "complex_picture": total(lambda p: p.metrics.complex_picture_count),
                "copybook": len(xref.copybook_to_programs),
            },
            "query_rewrite": {
                "sql_statement": total(lambda p: len(p.data_access)),
                "distinct_table": len(tables),
                "filtered_query": total(lambda p: sum(1 for a in p.data_access if a.where_clause)),
                "mixed_entity_access": sum(
                    1 for records in xref.entity_to_programs.values() for r in records if r.access_type == MIXED
                ),
            },
            "procedural_logic": {
                "cyclomatic_density": total(lambda p: p.control_flow.cyclomatic) / code_lines * 100,
                "deeply_nested_program": sum(1 for p in programs if p.control_flow.max_if_depth > 3),
                "goto": total(lambda p: p.control_flow.goto_count),
                "evaluate": total(lambda p: p.control_flow.evaluate_count),
            },
            "data_volume": {
                "entity": len(xref.entity_to_programs),
                "dataset": len({dd.dataset_name for dd in datasets}),
                "generation_dataset": len({dd.dataset_name for dd in datasets if dd.dataset_type == "GDG"}),
                "indexed_dataset": len({dd.dataset_name for dd in datasets if dd.dataset_type == "VSAM"})
                + len(indexed_files),
                "kloc": total(lambda p: p.metrics.total_lines) // 1000,
            },
            "application_dependency": {
                "call_edge": xref.statistics.total_call_relationships,
                "external_program": sum(1 for n in xref.nodes.values() if n.node_type == "EXTERNAL"),
                "call_depth": xref.statistics.max_call_depth,
                "shared_copybook": sum(1 for users in xref.copybook_to_programs.values() if len(users) > 1),
                "dynamic_call": sum(1 for e in xref.edges if e.call_type == "DYNAMIC"),
            },
            "operational_risk": {
                "job": sum(len(jcl.jobs) for jcl in jobs),
                "job_step": len(steps),
                "conditional_step": sum(1 for s in steps if s.is_conditional),
                "high_risk_feature": len(platform.high_risk_features) if platform else 0,
                "assembler_call": total(lambda p: p.metrics.assembler_call_count),
                "sort_merge": total(lambda p: p.metrics.sort_merge_count),
            },
        }


# ===========================================
# Migration impact
# ===========================================

@dataclass
class MigrationRisk:
    risk_id: str
    category: str                   # TECHNICAL, BUSINESS, DATA, INTEGRATION
    severity: str
    description: str
    mitigation: str


@dataclass
class CriticalPath:
    path_name: str
    programs: List[str]
    reason: str
    priority: int


@dataclass
class MigrationImpact:
    overall_complexity: str
    total_programs: int = 0
    low_complexity: int = 0
    medium_complexity: int = 0
    high_complexity: int = 0
    estimated_program_days: int = 0
    critical_paths: List[CriticalPath] = field(default_factory=list)
    risks: List[MigrationRisk] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    priority_order: List[str] = field(default_factory=list)


class MigrationImpactEstimator:
    """Effort, risks and ordering derived from the per-program assessments"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or get_config()
        self.effort_days = self.config["effort_days"]
        self.master_entity_limit = self.config["floor_thresholds"]["master_entities"]
        self.job_chain_steps = self.config["floor_thresholds"]["job_chain_steps"]

    def estimate(self, programs: Iterable[ProgramFacts], xref: CrossReferenceGraph,
                 score: ComplexityScore, signals: ProjectSignals,
                 platform: Optional[PlatformDependencyAnalysis] = None) -> MigrationImpact:
        programs = [p for p in programs if not p.is_empty]
        impact = MigrationImpact(overall_complexity=score.tier, total_programs=len(programs))

        for program in programs:
            difficulty = program.assessment.overall_difficulty if program.assessment else "Medium"
            if difficulty == "Low":
                impact.low_complexity += 1
            elif difficulty == "High":
                impact.high_complexity += 1
            else:
                impact.medium_complexity += 1

        impact.estimated_program_days = (
            impact.low_complexity * self.effort_days["Low"]
            + impact.medium_complexity * self.effort_days["Medium"]
            + impact.high_complexity * self.effort_days["High"]
        )

        impact.critical_paths = [
            CriticalPath(
                path_name=f"Main Entry Point {i}",
                programs=[root],
                reason="Root program with dependent chains",
                priority=i,
            )
            for i, root in enumerate(xref.roots[:5], start=1)
        ]

        impact.risks = self._risks(signals, platform)
        impact.recommendations = self._recommendations(impact, signals, platform)
        impact.priority_order = [program_key(p) for p in sorted(programs, key=lambda p: -self._ease(p))]

        logger.info(
            f"Estimated {impact.estimated_program_days} program-days across {impact.total_programs} programs"
        )
        return impact

    @staticmethod
    def _ease(program: ProgramFacts) -> int:
        low = program.assessment is not None and program.assessment.overall_difficulty == "Low"
        return int(low) + int(not program.external_calls)

    def _risks(self, signals: ProjectSignals,
               platform: Optional[PlatformDependencyAnalysis]) -> List[MigrationRisk]:
        risks = []
        if platform is not None:
            risks.extend(
                MigrationRisk(r.risk_id, "TECHNICAL", r.risk_level, r.description, r.mitigation)
                for r in platform.risks
            )
        if signals.has_indexed_access and signals.has_relational_access:
            risks.append(MigrationRisk(
                "SYS1", "TECHNICAL", "MEDIUM",
                "System uses both indexed-file and relational data access",
                "Consider consolidating to a single data access paradigm during migration",
            ))
        if signals.has_interactive and signals.has_scheduled:
            risks.append(MigrationRisk(
                "SYS2", "INTEGRATION", "MEDIUM",
                "System has both online and batch processing requiring coordination",
                "Develop an integrated test plan covering online-batch interactions",
            ))
        if signals.longest_job_steps > self.job_chain_steps:
            risks.append(MigrationRisk(
                "SYS3", "BUSINESS", "MEDIUM",
                "Multi-step JCL job chains require careful orchestration during migration",
                "Map job dependencies and establish a migration sequence plan",
            ))
        if signals.master_entities > self.master_entity_limit:
            risks.append(MigrationRisk(
                "DR1", "DATA", "MEDIUM",
                "Multiple master entities require coordinated migration",
                "Develop a data migration sequencing plan with dependency ordering",
            ))
        return risks

    def _recommendations(self, impact: MigrationImpact, signals: ProjectSignals,
                         platform: Optional[PlatformDependencyAnalysis]) -> List[str]:
        recommendations = list(platform.recommendations) if platform else []
        if impact.overall_complexity in (DifficultyTier.HIGH.value, DifficultyTier.VERY_HIGH.value):
            recommendations.append("Consider a phased migration approach due to high system complexity")
            recommendations.append("Establish a test environment mirroring production data volumes")
        if signals.longest_job_steps > self.job_chain_steps:
            recommendations.append("Map and document all JCL job chains before migration begins")
        if signals.has_indexed_access and signals.has_relational_access:
            recommendations.append("Create a unified data access layer over indexed files and relational tables")
        recommendations.extend([
            "Begin with utility and validation programs",
            "Migrate master maintenance programs before transaction processing",
            "Test batch chains end-to-end after migration",
        ])
        return recommendations
