"""
Platform Dependency Analyzer

Classifies the constructs a project uses as:
- Vendor-neutral COBOL (portable)
- IBM-specific (CICS, DB2, VSAM, IMS, LE)
- Fujitsu-specific (Symfoware, AIM, extensions)

and derives a platform label, a 0-100 portability score, risks and
recommendations.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional
import logging

from legacyxref.config import get_config
from legacyxref.static_analysis.models import ProgramFacts
from legacyxref.xref.graph_builder import program_key

logger = logging.getLogger(__name__)

# (feature, pattern, description)
VENDOR_NEUTRAL_FEATURES = [
    ("Standard File I/O", r'\b(OPEN|CLOSE|READ|WRITE)\b', "Standard COBOL file operations"),
    ("PERFORM Statements", r'\bPERFORM\b', "Standard COBOL control flow"),
    ("MOVE/COMPUTE", r'\b(MOVE|COMPUTE|ADD|SUBTRACT|MULTIPLY|DIVIDE)\b', "Standard COBOL data manipulation"),
    ("EVALUATE Statement", r'\bEVALUATE\b', "Standard COBOL EVALUATE"),
    ("STRING/UNSTRING", r'\b(UN)?STRING\b', "Standard COBOL string handling"),
    ("INSPECT Statement", r'\bINSPECT\b', "Standard COBOL INSPECT"),
    ("Standard ACCEPT/DISPLAY", r'\b(ACCEPT|DISPLAY)\b', "Standard COBOL console I/O"),
    ("CALL Statement", r'\bCALL\s+[\'"][^\'"]+[\'"]', "Standard COBOL program calls"),
    ("COPY Statement", r'\bCOPY\s+[A-Z0-9\-]+', "Standard COBOL copybook inclusion"),
]

# (feature, pattern, description, migration difficulty)
IBM_FEATURES = [
    ("EXEC CICS", r'EXEC\s+CICS', "CICS transaction processing", "HIGH"),
    ("EXEC SQL (DB2)", r'EXEC\s+SQL', "Embedded SQL in DB2 syntax", "MEDIUM"),
    ("CALL DFHEI", r'CALL\s+[\'"]?DFHEI', "CICS system interface calls", "HIGH"),
    ("VSAM KSDS Access", r'ORGANIZATION\s+IS\s+INDEXED', "VSAM key-sequenced dataset", "MEDIUM"),
    ("VSAM ESDS Access", r'ORGANIZATION\s+IS\s+SEQUENTIAL.*ACCESS.*DYNAMIC', "VSAM entry-sequenced dataset", "MEDIUM"),
    ("VSAM RRDS Access", r'ORGANIZATION\s+IS\s+RELATIVE', "VSAM relative record dataset", "MEDIUM"),
    ("IMS DL/I", r'EXEC\s+DLI|CALL\s+[\'"]?CBLTDLI', "IMS hierarchical database access", "HIGH"),
    ("IBM Language Environment", r'CEEMSG|CEELOCT|CEEDATM', "IBM LE callable services", "MEDIUM"),
    ("JCL DD Interaction", r'ASSIGN\s+TO\s+[A-Z0-9\-]+', "JCL DD name assignment", "LOW"),
    ("COBOL Enterprise Features", r'XML\s+PARSE|JSON\s+PARSE', "IBM Enterprise COBOL features", "MEDIUM"),
]

FUJITSU_FEATURES = [
    ("ACCEPT DATE YYYYMMDD", r'ACCEPT.*DATE\s+YYYYMMDD', "Fujitsu date format extension", "LOW"),
    ("SYMBOLIC CHARACTERS", r'SYMBOLIC\s+CHARACTERS', "Fujitsu symbolic character extension", "LOW"),
    ("Symfoware SQL", r'EXEC\s+SQL.*SYMFOWARE', "Fujitsu Symfoware database access", "MEDIUM"),
    ("FUJITSU TP Monitor", r'EXEC\s+AIM', "Fujitsu AIM transaction processing", "HIGH"),
    ("FUJITSU Data Adapter", r'EXEC\s+ODBC', "Fujitsu ODBC data adapter", "MEDIUM"),
    ("FUJITSU Extensions", r'FUNCTION\s+(NATIONAL-OF|DISPLAY-OF)', "Fujitsu COBOL extensions", "LOW"),
]

# feature -> recommendation
FEATURE_RECOMMENDATIONS = [
    ("EXEC CICS", "Plan CICS transaction migration to a target TP monitor or containerized CICS"),
    ("EXEC SQL (DB2)", "Review embedded SQL for compatibility with the target database"),
    ("IMS DL/I", "IMS hierarchical data requires restructuring to a relational model"),
    ("VSAM KSDS Access", "Migrate VSAM files to relational tables or modern file formats"),
    ("VSAM ESDS Access", "Migrate VSAM files to relational tables or modern file formats"),
    ("Symfoware SQL", "Symfoware SQL syntax may need adjustments for the target database"),
    ("FUJITSU TP Monitor", "Fujitsu AIM processing requires an equivalent TP monitor on the target platform"),
]


@dataclass
class PlatformFeature:
    feature: str
    description: str
    migration_difficulty: str = "LOW"
    usage_count: int = 0
    programs: List[str] = field(default_factory=list)


@dataclass
class PlatformRisk:
    risk_id: str
    risk_level: str
    description: str
    affected_programs: List[str]
    mitigation: str


@dataclass
class PlatformDependencyAnalysis:
    platform: str = "UNKNOWN"       # IBM, FUJITSU, MIXED, UNKNOWN
    vendor_neutral: List[PlatformFeature] = field(default_factory=list)
    ibm_specific: List[PlatformFeature] = field(default_factory=list)
    fujitsu_specific: List[PlatformFeature] = field(default_factory=list)
    risks: List[PlatformRisk] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    portability_score: int = 100

    @property
    def platform_features(self) -> List[PlatformFeature]:
        return self.ibm_specific + self.fujitsu_specific

    @property
    def high_risk_features(self) -> List[PlatformFeature]:
        return [f for f in self.platform_features if f.migration_difficulty == "HIGH"]

    def uses(self, feature: str) -> bool:
        return any(f.feature == feature for f in self.platform_features)


class PlatformAnalyzer:
    """Detect platform-specific constructs across program sources"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or get_config()
        self.high_feature_penalty = self.config["platform"]["high_feature_penalty"]

        self.neutral_patterns = [(n, re.compile(p, re.IGNORECASE), d) for n, p, d in VENDOR_NEUTRAL_FEATURES]
        self.ibm_patterns = [(n, re.compile(p, re.IGNORECASE), d, lvl) for n, p, d, lvl in IBM_FEATURES]
        self.fujitsu_patterns = [(n, re.compile(p, re.IGNORECASE), d, lvl) for n, p, d, lvl in FUJITSU_FEATURES]

    def analyze(self, programs: Iterable[ProgramFacts]) -> PlatformDependencyAnalysis:
        neutral: Dict[str, PlatformFeature] = {}
        ibm: Dict[str, PlatformFeature] = {}
        fujitsu: Dict[str, PlatformFeature] = {}
        neutral_hits = 0
        specific_hits = 0

        for program in programs:
            if program.is_empty:
                continue
            program_id = program_key(program)
            content = program.content

            for name, pattern, desc in self.neutral_patterns:
                if pattern.search(content):
                    self._count(neutral, name, desc, "LOW", program_id)
                    neutral_hits += 1

            for registry, patterns in ((ibm, self.ibm_patterns), (fujitsu, self.fujitsu_patterns)):
                for name, pattern, desc, difficulty in patterns:
                    if pattern.search(content):
                        self._count(registry, name, desc, difficulty, program_id)
                        specific_hits += 1

        result = PlatformDependencyAnalysis(
            platform=self._platform(bool(ibm), bool(fujitsu)),
            vendor_neutral=list(neutral.values()),
            ibm_specific=list(ibm.values()),
            fujitsu_specific=list(fujitsu.values()),
        )
        result.portability_score = self.portability_score(
            neutral_hits, specific_hits, len(result.high_risk_features))
        result.risks = [
            PlatformRisk(
                risk_id=f"PR{i}",
                risk_level="HIGH",
                description=f"{f.feature} requires significant migration effort",
                affected_programs=list(f.programs),
                mitigation=f"Replace {f.feature} with a target platform equivalent or portable alternative",
            )
            for i, f in enumerate(result.high_risk_features, start=1)
        ]
        result.recommendations = self._recommendations(result)

        logger.info(
            f"Platform: {result.platform}, portability {result.portability_score}, "
            f"{len(result.high_risk_features)} high-risk feature(s)"
        )
        return result

    def portability_score(self, neutral_hits: int, specific_hits: int, high_risk_count: int) -> int:
        """Neutral share of feature hits x 100, less a penalty per HIGH feature, floor 0"""
        total = neutral_hits + specific_hits
        score = round(neutral_hits / total * 100) if total else 100
        return max(0, score - high_risk_count * self.high_feature_penalty)

    @staticmethod
    def _count(registry: Dict[str, PlatformFeature], name: str, desc: str,
               difficulty: str, program_id: str) -> None:
        feature = registry.get(name)
        if feature is None:
            feature = registry[name] = PlatformFeature(name, desc, difficulty)
        feature.usage_count += 1
        if program_id not in feature.programs:
            feature.programs.append(program_id)

    @staticmethod
    def _platform(has_ibm: bool, has_fujitsu: bool) -> str:
        if has_ibm and has_fujitsu:
            return "MIXED"
        if has_ibm:
            return "IBM"
        if has_fujitsu:
            return "FUJITSU"
        return "UNKNOWN"

    @staticmethod
    def _recommendations(result: PlatformDependencyAnalysis) -> List[str]:
        recommendations = []
        for feature, text in FEATURE_RECOMMENDATIONS:
            if result.uses(feature) and text not in recommendations:
                recommendations.append(text)

        if result.portability_score < 50:
            recommendations.append("Heavy platform dependencies; consider a phased migration approach")
        elif result.portability_score >= 80:
            recommendations.append("Mostly standard COBOL; migration should be relatively straightforward")
        return recommendations
