"""Job Control Structural Extraction

Jobs, steps, DD statements and procedures from JCL members, plus the
program executions and dataset hand-offs derived from them.
"""

from .continuation import ContinuationState, fold_continuations
from .jcl_parser import JclParser
from .models import JclFacts, JobFact, StepFact, DatasetFact, ProcFact

__all__ = [
    "ContinuationState",
    "fold_continuations",
    "JclParser",
    "JclFacts",
    "JobFact",
    "StepFact",
    "DatasetFact",
    "ProcFact",
]
