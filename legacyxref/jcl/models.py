"""Fact models produced by the job control extractor"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from legacyxref.context import Anomaly


def is_temporary_dataset(name: Optional[str]) -> bool:
    """&&NAME and &NAME datasets live only for the duration of the job"""
    return bool(name) and name.startswith('&')


@dataclass
class StepCondition:
    """COND= test or the enclosing // IF expression"""
    condition_type: str             # COND, IF
    expression: str
    check_code: Optional[int] = None
    operator: Optional[str] = None  # EQ, NE, GT, GE, LT, LE
    reference_step: Optional[str] = None


@dataclass
class DatasetFact:
    """One DD statement"""
    dd_name: str
    dataset_name: Optional[str] = None
    access_mode: str = "UNKNOWN"    # INPUT, OUTPUT, I-O, UNKNOWN
    dataset_type: str = "UNKNOWN"   # SEQUENTIAL, VSAM, GDG, TEMP, SYSOUT, INSTREAM, UNKNOWN
    is_temporary: bool = False
    disposition: Optional[str] = None
    recfm: Optional[str] = None
    lrecl: Optional[int] = None
    blksize: Optional[int] = None
    instream_data: List[str] = field(default_factory=list)
    line_number: int = 0


@dataclass
class StepFact:
    """One EXEC statement and its DD statements"""
    step_name: str
    step_number: int
    program_name: str = "UNKNOWN"
    proc_name: Optional[str] = None
    dd_statements: List[DatasetFact] = field(default_factory=list)
    condition: Optional[StepCondition] = None
    is_conditional: bool = False
    parm: Optional[str] = None
    region: Optional[str] = None
    time: Optional[str] = None
    line_number: int = 0

    @property
    def runs_proc(self) -> bool:
        return self.program_name.startswith("PROC:")


@dataclass
class JobFact:
    """A JOB card and its steps in running order"""
    job_name: str
    steps: List[StepFact] = field(default_factory=list)
    parameters: Dict[str, str] = field(default_factory=dict)
    line_number: int = 0


@dataclass
class ProcParameter:
    """A symbolic parameter of a PROC statement"""
    name: str
    default_value: Optional[str] = None


@dataclass
class ProcFact:
    """A cataloged or in-stream procedure"""
    proc_name: str
    parameters: List[ProcParameter] = field(default_factory=list)
    steps: List[StepFact] = field(default_factory=list)
    line_number: int = 0


@dataclass
class ProgramExecution:
    """A program run by a job step"""
    program_name: str
    step_name: str
    job_name: str
    execution_order: int
    input_datasets: List[str] = field(default_factory=list)
    output_datasets: List[str] = field(default_factory=list)
    parameters: Optional[str] = None


@dataclass
class DatasetReference:
    """A permanent dataset and the steps that touch it"""
    dataset_name: str
    dd_name: str
    access_mode: str
    dataset_type: str
    used_by_programs: List[str] = field(default_factory=list)
    used_in_steps: List[str] = field(default_factory=list)


@dataclass
class DataFlowPath:
    """A dataset written by one step and read by a later one"""
    source_dataset: str
    target_dataset: str
    producer_step: str
    consumer_step: str
    flow_type: str = "SEQUENTIAL"


@dataclass
class BatchFlow:
    """Step running order and data hand-offs of the jobs in one file"""
    flow_name: str
    execution_order: List[str] = field(default_factory=list)
    data_flow_paths: List[DataFlowPath] = field(default_factory=list)


@dataclass
class JclMetrics:
    total_lines: int = 0
    total_steps: int = 0
    total_dd_statements: int = 0
    unique_programs: int = 0
    unique_datasets: int = 0
    conditional_steps: int = 0


@dataclass
class JclFacts:
    """Everything extracted from one JCL member"""
    source_path: str
    file_type: str = "JOB"          # JOB, PROC
    jobs: List[JobFact] = field(default_factory=list)
    procedures: List[ProcFact] = field(default_factory=list)
    program_executions: List[ProgramExecution] = field(default_factory=list)
    dataset_references: List[DatasetReference] = field(default_factory=list)
    batch_flow: Optional[BatchFlow] = None
    metrics: JclMetrics = field(default_factory=JclMetrics)
    anomalies: List[Anomaly] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.jobs and not self.procedures

    @property
    def executed_programs(self) -> List[str]:
        """Programs run by PGM= steps of the jobs and procedures, in order of appearance"""
        steps = [s for job in self.jobs for s in job.steps]
        steps += [s for proc in self.procedures for s in proc.steps]
        names = [s.program_name.upper() for s in steps if not s.runs_proc]
        return [n for n in dict.fromkeys(names) if n != "UNKNOWN"]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
