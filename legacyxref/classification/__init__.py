"""Classification & Scoring

Program roles, business processes, platform dependencies and migration
complexity, computed after extraction and cross-referencing.
"""

from .business_process import BusinessEntity, BusinessProcess, BusinessProcessAnalyzer
from .complexity_scorer import (
    ComplexityScore,
    DifficultyTier,
    MigrationImpactEstimator,
    ProgramComplexityScorer,
    ProjectComplexityScorer,
    apply_floors,
    collect_project_signals,
)
from .platform_analyzer import PlatformAnalyzer, PlatformDependencyAnalysis
from .role_classifier import ProgramKind, RoleAssignment, RoleClassifier

__all__ = [
    "BusinessEntity",
    "BusinessProcess",
    "BusinessProcessAnalyzer",
    "ComplexityScore",
    "DifficultyTier",
    "MigrationImpactEstimator",
    "ProgramComplexityScorer",
    "ProjectComplexityScorer",
    "apply_floors",
    "collect_project_signals",
    "PlatformAnalyzer",
    "PlatformDependencyAnalysis",
    "ProgramKind",
    "RoleAssignment",
    "RoleClassifier",
]
