"""Program Structural Extraction

Line-oriented extraction of facts from COBOL program source:
- Paragraphs and PERFORM relationships
- Embedded SQL and file access
- Decision points, external calls, key data items
- Business rules, error conditions, metrics and assessment
"""

from .program_analyzer import ProgramAnalyzer
from .cobol_parser import ProgramStructureParser, ParagraphScanState
from .sql_extractor import SqlBlockExtractor, SqlScanState
from .file_access_extractor import FileAccessExtractor
from .control_flow_analyzer import ControlFlowAnalyzer, DecisionPointExtractor
from .dependency_analyzer import ExternalCallExtractor
from .data_structure_extractor import DataStructureExtractor
from .business_rule_detector import BusinessRuleDetector
from .models import ProgramFacts

__all__ = [
    "ProgramAnalyzer",
    "ProgramStructureParser",
    "ParagraphScanState",
    "SqlBlockExtractor",
    "SqlScanState",
    "FileAccessExtractor",
    "ControlFlowAnalyzer",
    "DecisionPointExtractor",
    "ExternalCallExtractor",
    "DataStructureExtractor",
    "BusinessRuleDetector",
    "ProgramFacts",
]
