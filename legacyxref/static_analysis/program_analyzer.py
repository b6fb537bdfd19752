"""Program Analyzer

Orchestrates the program extractors into one ProgramFacts per source file.
"""

from pathlib import Path
from typing import Optional, Union
import logging

from legacyxref.context import AnalysisContext
from legacyxref.source import SourceUnit, load_source
from .business_rule_detector import BusinessRuleDetector
from .cobol_parser import ProgramStructureParser
from .control_flow_analyzer import ControlFlowAnalyzer, DecisionPointExtractor
from .data_structure_extractor import DataStructureExtractor
from .dependency_analyzer import ExternalCallExtractor
from .file_access_extractor import FileAccessExtractor
from .models import ProgramFacts
from .program_assessment import (
    ProgramAssessor,
    build_overview,
    build_process_steps,
    collect_metrics,
)
from .sql_extractor import SqlBlockExtractor

logger = logging.getLogger(__name__)


class ProgramAnalyzer:
    """
    Extract every structural fact from one COBOL program.

    The analyzer keeps no state between calls; anything that spans files
    goes on the AnalysisContext.
    """

    def __init__(self):
        self.parser = ProgramStructureParser()
        self.sql = SqlBlockExtractor()
        self.files = FileAccessExtractor()
        self.decisions = DecisionPointExtractor()
        self.control_flow = ControlFlowAnalyzer()
        self.calls = ExternalCallExtractor()
        self.data_items = DataStructureExtractor()
        self.business_rules = BusinessRuleDetector()
        self.assessor = ProgramAssessor()

    def analyze_file(self, path: Union[str, Path],
                     context: Optional[AnalysisContext] = None) -> ProgramFacts:
        return self.analyze(load_source(path), context)

    def analyze(self, source: SourceUnit,
                context: Optional[AnalysisContext] = None) -> ProgramFacts:
        """
        Analyze one program source.

        Args:
            source: Loaded program source
            context: Run context (a fresh one is used when omitted)

        Returns:
            ProgramFacts; empty apart from the source path when the source
            has no lines
        """
        context = context or AnalysisContext()
        source_path = str(source.path) if source.path else source.name

        if source.is_empty:
            anomaly = context.record_anomaly("EMPTY_SOURCE", source.name,
                                             detail="no readable lines")
            context.skipped_files.append(source_path)
            return ProgramFacts(source_path=source_path, anomalies=[anomaly])

        logger.info(f"Analyzing program {source.name}")

        structure = self.parser.parse(source, context)
        paragraphs = structure.paragraphs
        start = structure.procedure_line

        facts = ProgramFacts(
            source_path=source_path,
            program_id=structure.program_id,
            divisions=structure.divisions,
            paragraphs=paragraphs,
            copybooks=structure.copybooks,
            anomalies=structure.anomalies,
            content="\n".join(source.lines),
        )

        facts.data_access = self.sql.extract(source, paragraphs, context, facts.anomalies)
        facts.file_access = self.files.extract(source)
        facts.decisions = self.decisions.extract(source, paragraphs, start, context)
        facts.external_calls = self.calls.extract(source, paragraphs, start)
        facts.data_items = self.data_items.extract(source)
        facts.business_rules = self.business_rules.detect_rules(source, paragraphs, start, context)
        facts.error_conditions = self.business_rules.detect_error_conditions(
            source, paragraphs, start, context
        )
        facts.control_flow = self.control_flow.analyze(source)
        facts.metrics = collect_metrics(source, paragraph_count=len(paragraphs))
        facts.overview = build_overview(source, facts.program_id, facts.file_access,
                                        facts.data_access)
        facts.assessment = self.assessor.assess(paragraphs, facts.decisions, facts.data_access,
                                                facts.file_access, facts.business_rules)
        facts.process_steps = build_process_steps(paragraphs, facts.data_access,
                                                  facts.file_access)

        context.register_program(facts.program_id, source_path)

        logger.info(
            f"{facts.program_id}: {len(paragraphs)} paragraphs, "
            f"{len(facts.data_access)} SQL, {len(facts.file_access)} files, "
            f"{len(facts.external_calls)} calls"
        )
        return facts
