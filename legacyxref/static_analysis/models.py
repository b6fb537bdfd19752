"""Fact models produced by the program structural extractor

Line numbers are 1-based throughout so that every fact can be cited
against the original file.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from legacyxref.context import Anomaly


@dataclass
class Paragraph:
    """A named unit of PROCEDURE DIVISION logic"""
    name: str
    line_start: int
    line_end: int
    performs: List[str] = field(default_factory=list)
    performed_by: List[str] = field(default_factory=list)
    purpose: str = ""

    def contains(self, line_number: int) -> bool:
        return self.line_start <= line_number <= self.line_end


@dataclass
class CopybookRef:
    """A COPY statement"""
    name: str
    line_number: int


@dataclass
class DataAccessFact:
    """One embedded SQL statement against a table"""
    entity: str
    operation: str              # SELECT, INSERT, UPDATE, DELETE
    paragraph: str
    line_number: int
    columns: List[str] = field(default_factory=list)
    where_clause: Optional[str] = None
    business_role: str = ""


@dataclass
class FileAccessFact:
    """A declared file handle and what the program does with it"""
    handle: str
    external_name: str
    line_number: int
    access_mode: str = "INPUT"  # INPUT, OUTPUT, I-O, EXTEND
    operations: List[str] = field(default_factory=list)
    business_meaning: str = ""


@dataclass
class DecisionFact:
    """A branching construct with its enumerated branch labels"""
    kind: str                   # IF, EVALUATE, PERFORM_UNTIL, AT_END
    condition: str
    branches: List[str]
    paragraph: str
    line_number: int
    business_meaning: str = ""


@dataclass
class ExternalCall:
    """A CALL to another program"""
    program_name: str
    paragraph: str
    line_number: int
    parameters: List[str] = field(default_factory=list)
    is_dynamic: bool = False
    assumed_role: str = ""
    category: str = "application"


@dataclass
class DataItem:
    """A significant DATA DIVISION item"""
    name: str
    level: int
    line_number: int
    picture: Optional[str] = None
    value: Optional[str] = None
    occurs: Optional[int] = None
    redefines: Optional[str] = None
    is_flag: bool = False
    flag_values: List[Dict[str, str]] = field(default_factory=list)
    business_meaning: str = ""


@dataclass
class BusinessRule:
    """A heuristically detected business rule"""
    rule_id: str
    rule_type: str              # VALIDATION, DECISION, CALCULATION
    description: str
    implementation: str
    paragraph: str
    line_number: int
    confidence: float


@dataclass
class ErrorCondition:
    """A detected error check and its inferred handling"""
    error_type: str
    detection: str
    handling: str
    behavior: str               # ABORT, SKIP, CONTINUE, RETRY
    paragraph: str
    line_number: int
    user_message: Optional[str] = None


@dataclass
class ProcessStep:
    """One paragraph visited while walking the PERFORM tree"""
    step_number: int
    paragraph: str
    line_start: int
    line_end: int
    business_action: str
    description: str
    called_paragraphs: List[str] = field(default_factory=list)
    sql_operations: List[str] = field(default_factory=list)
    file_operations: List[str] = field(default_factory=list)


@dataclass
class ControlFlowMetrics:
    """Counts that feed the logic complexity score"""
    cyclomatic: int = 1
    max_if_depth: int = 0
    goto_count: int = 0
    evaluate_count: int = 0
    perform_count: int = 0


@dataclass
class ProgramMetrics:
    """Line counts and construct counts for one program"""
    total_lines: int = 0
    code_lines: int = 0
    comment_lines: int = 0
    blank_lines: int = 0
    paragraph_count: int = 0
    sql_statement_count: int = 0
    file_operation_count: int = 0
    copybook_count: int = 0
    occurs_count: int = 0
    redefines_count: int = 0
    packed_decimal_count: int = 0
    assembler_call_count: int = 0
    complex_picture_count: int = 0
    sort_merge_count: int = 0
    uses_report_writer: bool = False


@dataclass
class AssessmentFactor:
    """A 1-5 score with the reasons behind it"""
    score: int
    factors: List[str] = field(default_factory=list)


@dataclass
class ProgramAssessment:
    """Three-factor difficulty assessment"""
    logic: AssessmentFactor
    data: AssessmentFactor
    rule_density: AssessmentFactor
    overall_difficulty: str     # Low, Medium, High
    justification: str


@dataclass
class ProgramOverview:
    """What the program appears to do and how it runs"""
    purpose: str
    business_responsibility: str
    processing_type: str        # Batch, Online, Interactive, Unknown
    trigger_condition: str
    termination_condition: str


@dataclass
class ProgramFacts:
    """Everything extracted from one program source"""
    source_path: str
    program_id: str = "UNKNOWN"
    divisions: List[str] = field(default_factory=list)
    paragraphs: List[Paragraph] = field(default_factory=list)
    copybooks: List[CopybookRef] = field(default_factory=list)
    data_access: List[DataAccessFact] = field(default_factory=list)
    file_access: List[FileAccessFact] = field(default_factory=list)
    decisions: List[DecisionFact] = field(default_factory=list)
    external_calls: List[ExternalCall] = field(default_factory=list)
    data_items: List[DataItem] = field(default_factory=list)
    business_rules: List[BusinessRule] = field(default_factory=list)
    error_conditions: List[ErrorCondition] = field(default_factory=list)
    process_steps: List[ProcessStep] = field(default_factory=list)
    control_flow: ControlFlowMetrics = field(default_factory=ControlFlowMetrics)
    metrics: ProgramMetrics = field(default_factory=ProgramMetrics)
    overview: Optional[ProgramOverview] = None
    assessment: Optional[ProgramAssessment] = None
    anomalies: List[Anomaly] = field(default_factory=list)
    content: str = field(default="", repr=False)

    @property
    def is_empty(self) -> bool:
        return not self.content

    @property
    def copybook_names(self) -> List[str]:
        return [c.name for c in self.copybooks]

    @property
    def processing_type(self) -> str:
        return self.overview.processing_type if self.overview else "Unknown"

    def paragraph(self, name: str) -> Optional[Paragraph]:
        for para in self.paragraphs:
            if para.name == name:
                return para
        return None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("content")
        return data
