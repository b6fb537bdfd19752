"""Per-run analysis context

Registries that would otherwise be global (anomaly log, program ids seen
so far, skipped files) live on one AnalysisContext that is passed through
every extractor call. Independent runs never share state.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional
import logging

from legacyxref.config import get_config

logger = logging.getLogger(__name__)


@dataclass
class Anomaly:
    """A structural ambiguity noticed while scanning"""
    kind: str
    source: str
    line_number: int = 0
    name: str = ""
    detail: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AnalysisContext:
    """State scoped to a single analysis run"""
    config: Dict[str, Any] = field(default_factory=get_config)
    anomalies: List[Anomaly] = field(default_factory=list)
    skipped_files: List[str] = field(default_factory=list)
    program_sources: Dict[str, str] = field(default_factory=dict)

    def record_anomaly(self, kind: str, source: str, line_number: int = 0,
                       name: str = "", detail: str = "") -> Anomaly:
        anomaly = Anomaly(kind=kind, source=source, line_number=line_number,
                          name=name, detail=detail)
        self.anomalies.append(anomaly)
        logger.debug(f"Anomaly {kind} in {source}:{line_number} {name} {detail}".rstrip())
        return anomaly

    def register_program(self, program_id: str, source: str) -> bool:
        """Remember which file defined a program id; False on a repeat"""
        if program_id in self.program_sources:
            self.record_anomaly(
                "DUPLICATE_PROGRAM_ID", source, name=program_id,
                detail=f"first defined in {self.program_sources[program_id]}",
            )
            return False
        self.program_sources[program_id] = source
        return True

    def anomalies_for(self, source: str) -> List[Anomaly]:
        return [a for a in self.anomalies if a.source == source]

    def window(self, name: str, default: Optional[int] = None) -> int:
        return int(self.config.get("lookahead_windows", {}).get(name, default or 0))
