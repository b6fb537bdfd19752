"""Roles, business processes, platform dependencies and complexity scoring"""

import pytest

from legacyxref.classification import (
    BusinessProcessAnalyzer,
    DifficultyTier,
    MigrationImpactEstimator,
    PlatformAnalyzer,
    ProgramComplexityScorer,
    ProjectComplexityScorer,
    RoleClassifier,
    apply_floors,
    collect_project_signals,
)
from legacyxref.classification.business_process import (
    business_name,
    data_access_paradigm,
    infer_domain,
)
from legacyxref.classification.complexity_scorer import (
    ComplexityScore,
    ProjectSignals,
    clamp,
    raise_tier,
    score_dimension,
    tier_for,
)
from legacyxref.config import get_config
from legacyxref.jcl import JclParser
from legacyxref.source import SourceUnit
from legacyxref.static_analysis import ProgramAnalyzer
from legacyxref.static_analysis.models import (
    ControlFlowMetrics,
    DataAccessFact,
    ExternalCall,
    ProgramFacts,
    ProgramMetrics,
)
from legacyxref.xref import CrossReferenceBuilder
from legacyxref.xref.models import CrossReferenceGraph

THRESHOLDS = get_config()["tier_thresholds"]
FLOOR_THRESHOLDS = get_config()["floor_thresholds"]


def _program(program_id, operations=(), table="ACCT_MST", content="       PROCEDURE DIVISION.", **kwargs):
    return ProgramFacts(
        source_path=f"{program_id}.cbl",
        program_id=program_id,
        content=content,
        data_access=[DataAccessFact(entity=table, operation=op, paragraph="MAIN", line_number=i)
                     for i, op in enumerate(operations, start=1)],
        **kwargs,
    )


@pytest.fixture
def sample(custupd_source, custinq_source, custjob_source, context):
    analyzer = ProgramAnalyzer()
    programs = [analyzer.analyze(custupd_source, context), analyzer.analyze(custinq_source, context)]
    jobs = [JclParser().parse(custjob_source, context)]
    xref = CrossReferenceBuilder().build(programs, jobs, ["CUSTCOPY", "OLDCOPY"])
    return programs, jobs, xref


class TestRoleClassifier:
    """Role tables by program kind"""

    def test_batch_full_crud_is_batch_update(self):
        """UT-RC-01: A JCL-executed program never becomes MASTER_MAINTENANCE"""
        program = _program("ACCTPGM", ("SELECT", "INSERT", "UPDATE", "DELETE"))
        role = RoleClassifier().classify_program(program, {"ACCTPGM"})

        assert (role.role, role.confidence, role.kind) == ("BATCH_UPDATE", 0.80, "BATCH")
        assert role.evidence[0] == "Executed by a JCL step"

    def test_online_full_crud_is_master_maintenance(self):
        """UT-RC-02: The same program outside any job maintains master data"""
        program = _program("ACCTPGM", ("SELECT", "INSERT", "UPDATE", "DELETE"))
        role = RoleClassifier().classify_program(program, set())

        assert (role.role, role.confidence, role.kind) == ("MASTER_MAINTENANCE", 0.85, "ONLINE")
        assert "Executed by a JCL step" not in role.evidence

    def test_batch_maintenance_name_is_not_master_maintenance(self):
        """UT-RC-03: Name hints for maintenance only apply to online programs"""
        role = RoleClassifier().classify_program(_program("ACCTMAINT"), {"ACCTMAINT"})
        assert (role.role, role.confidence) == ("BATCH_UPDATE", 0.40)

    def test_unidentifiable_program_is_utility(self):
        """UT-RC-04: Nothing observable falls back to a low-confidence UTILITY"""
        role = RoleClassifier().classify_program(_program("ZZZ9"), set())
        assert (role.role, role.confidence) == ("UTILITY", 0.30)
        assert "Manual review recommended" in role.evidence[0]

    def test_sample_project_roles(self, sample):
        """UT-RC-05: Scheduled updater and online inquiry"""
        programs, jobs, xref = sample
        roles = {r.program_id: r for r in RoleClassifier().classify(programs, jobs, xref)}

        custupd = roles["CUSTUPD"]
        assert (custupd.role, custupd.confidence, custupd.kind) == ("BATCH_UPDATE", 0.75, "BATCH")
        assert custupd.evidence[0] == "Executed by a JCL step"
        assert custupd.entities_managed == ["CUSTOMER", "CUSTIN", "RPTOUT"]

        custinq = roles["CUSTINQ"]
        assert (custinq.role, custinq.confidence, custinq.kind) == ("REPORTING", 0.70, "ONLINE")

    def test_empty_programs_not_classified(self):
        """UT-RC-06: Empty sources get no role"""
        assert RoleClassifier().classify([ProgramFacts(source_path="E.cbl")], []) == []


class TestBusinessProcesses:
    """Domain grouping and entities"""

    def test_sample_project_grouped_by_domain(self, sample):
        """UT-BP-01: Programs and the job share one customer process"""
        programs, jobs, _ = sample
        processes = BusinessProcessAnalyzer().identify_processes(programs, jobs)

        assert len(processes) == 1
        process = processes[0]
        assert process.process_id == "BP001"
        assert process.process_name == "Customer Management"
        assert process.process_type == "HYBRID"
        assert process.programs_involved == ["CUSTUPD", "CUSTINQ", "CUSTRPT"]
        assert process.entities_accessed[0] == "CUSTOMER"
        assert "PROD.CUST.REPORT" in process.entities_accessed
        assert process.trigger_type == "USER_INITIATED"
        assert process.frequency is None
        assert process.estimated_complexity == "MEDIUM"
        assert process.data_access_paradigm == "RDB_ONLY"

    def test_batch_only_process(self):
        """UT-BP-02: A group of scheduled programs is BATCH and SCHEDULED"""
        program = _program("DAILYRUN", ("SELECT",))
        process = BusinessProcessAnalyzer().identify_processes([program], [
            JclParser().parse(SourceUnit.from_text("//DAILYJOB JOB CLASS=A\n//S1 EXEC PGM=DAILYRUN\n")),
        ])[0]
        assert process.process_name == "Daily Batch Processing"
        assert process.process_type == "BATCH"
        assert process.trigger_type == "SCHEDULED"
        assert process.frequency == "Daily"
        assert process.entry_points == ["DAILYJOB"]

    def test_domain_inference(self):
        """UT-BP-03: Name keywords, then tables, then name parts"""
        assert infer_domain("CUSTINQ") == "Customer Management"
        assert infer_domain("XYZ1", _program("XYZ1", ("SELECT",), table="EMPLOYEE_T")) == "Employee Master Management"
        assert infer_domain("QQQQ9") == "Qqqq9 Processing"
        assert infer_domain("AB") == "Business Data Processing"

    def test_business_name(self):
        """UT-BP-04: Technical prefixes and suffixes are dropped"""
        assert business_name("TBL-CUSTOMER-REC") == "Customer"
        assert business_name("WS-ORDER-LINE") == "Order Line"

    def test_data_access_paradigm(self):
        """UT-BP-05: Indexed files, relational tables or plain files"""
        assert data_access_paradigm(["A"], ["B"], []) == "VSAM_AND_RDB"
        assert data_access_paradigm(["A"], [], []) == "VSAM_ONLY"
        assert data_access_paradigm([], ["B"], []) == "RDB_ONLY"
        assert data_access_paradigm([], [], ["C"]) == "FILE_BASED"
        assert data_access_paradigm([], [], []) == "MIXED"

    def test_entities_from_tables(self):
        """UT-BP-06: Entity type from table naming; technical areas skipped"""
        programs = [
            _program("P1", ("SELECT",), table="CUST_MST"),
            _program("P2", ("INSERT",), table="TRANS_HIST"),
            _program("P3", ("SELECT",), table="STATUS_CODE"),
            _program("P4", ("SELECT",), table="SQLCA"),
        ]
        entities = {e.entity_id: e for e in BusinessProcessAnalyzer().identify_entities(programs)}

        assert set(entities) == {"CUST_MST", "TRANS_HIST", "STATUS_CODE"}
        assert entities["CUST_MST"].entity_type == "MASTER"
        assert entities["TRANS_HIST"].entity_type == "TRANSACTION"
        assert entities["STATUS_CODE"].entity_type == "REFERENCE"
        assert entities["TRANS_HIST"].access_types == {"P2": ["INSERT"]}

    def test_sample_entities(self, sample):
        """UT-BP-07: One table shared by two programs"""
        programs, _, _ = sample
        entities = BusinessProcessAnalyzer().identify_entities(programs)

        assert [e.entity_id for e in entities] == ["CUSTOMER"]
        assert entities[0].used_by_programs == ["CUSTUPD", "CUSTINQ"]
        assert entities[0].access_types == {"CUSTUPD": ["UPDATE"], "CUSTINQ": ["SELECT"]}


class TestPlatformAnalyzer:
    """Vendor features and portability"""

    def test_portability_score(self):
        """UT-PL-01: Neutral share less a penalty per HIGH feature, floor 0"""
        analyzer = PlatformAnalyzer()
        assert analyzer.portability_score(3, 1, 0) == 75
        assert analyzer.portability_score(3, 1, 1) == 60
        assert analyzer.portability_score(0, 0, 0) == 100
        assert analyzer.portability_score(1, 9, 2) == 0

    def test_ibm_online_program(self, custinq_source):
        """UT-PL-02: CICS is a HIGH-risk IBM feature"""
        facts = ProgramAnalyzer().analyze(custinq_source)
        result = PlatformAnalyzer().analyze([facts])

        assert result.platform == "IBM"
        assert result.uses("EXEC CICS")
        assert result.uses("EXEC SQL (DB2)")
        assert [f.feature for f in result.high_risk_features] == ["EXEC CICS"]
        assert result.risks[0].risk_id == "PR1"
        assert result.risks[0].affected_programs == ["CUSTINQ"]
        assert any("CICS" in r for r in result.recommendations)
        assert 0 <= result.portability_score <= 100

    def test_fujitsu_and_mixed(self):
        """UT-PL-03: Vendor label from the vendor features seen"""
        fujitsu = _program("F1", content="       EXEC AIM GET END-EXEC.")
        ibm = _program("I1", content="       EXEC CICS RETURN END-EXEC.")

        assert PlatformAnalyzer().analyze([fujitsu]).platform == "FUJITSU"
        assert PlatformAnalyzer().analyze([fujitsu, ibm]).platform == "MIXED"

    def test_no_programs(self):
        """UT-PL-04: Nothing to inspect is fully portable"""
        result = PlatformAnalyzer().analyze([])
        assert result.platform == "UNKNOWN"
        assert result.portability_score == 100
        assert result.risks == []

    def test_vendor_neutral_needs_word_boundary(self):
        """UT-PL-05: Data names containing verbs are not statements"""
        program = _program("N1", content="       01  WS-READER-COUNT PIC 9.")
        result = PlatformAnalyzer().analyze([program])
        assert "Standard File I/O" not in [f.feature for f in result.vendor_neutral]


class TestTiers:
    """Tier thresholds and capped factors"""

    def test_tier_for(self):
        """UT-TR-01: Upper bounds are exclusive"""
        assert tier_for(29, THRESHOLDS) is DifficultyTier.LOW
        assert tier_for(30, THRESHOLDS) is DifficultyTier.MEDIUM
        assert tier_for(79, THRESHOLDS) is DifficultyTier.HIGH
        assert tier_for(80, THRESHOLDS) is DifficultyTier.VERY_HIGH

    def test_raise_tier_never_lowers(self):
        """UT-TR-02: The higher tier always wins"""
        assert raise_tier(DifficultyTier.HIGH, DifficultyTier.MEDIUM) is DifficultyTier.HIGH
        assert raise_tier(DifficultyTier.LOW, DifficultyTier.MEDIUM) is DifficultyTier.MEDIUM

    def test_score_dimension_caps(self):
        """UT-TR-03: Each factor contributes at most its cap"""
        factors = {"goto": {"weight": 3, "cap": 20}, "evaluate": {"weight": 1, "cap": 10}}
        score, notes = score_dimension({"goto": 10, "evaluate": 0}, factors)
        assert score == 20
        assert notes == ["goto: 10 (+20)"]

    def test_clamp(self):
        assert clamp(150) == 100
        assert clamp(-5) == 0
        assert clamp(42.4) == 42


class TestFloors:
    """System-level floors"""

    def test_floor_never_lowers(self):
        """UT-FL-01: A floor below the current tier leaves it alone"""
        signals = ProjectSignals(has_interactive=True, has_scheduled=True)
        tier, reasons = apply_floors(DifficultyTier.HIGH, signals, FLOOR_THRESHOLDS)
        assert tier is DifficultyTier.HIGH
        assert reasons == ["System has both interactive and scheduled processing modes"]

    def test_mixed_system_is_at_least_medium(self):
        """UT-FL-02: Scheduled, interactive, indexed and relational"""
        signals = ProjectSignals(has_indexed_access=True, has_relational_access=True,
                                 has_interactive=True, has_scheduled=True)
        tier, reasons = apply_floors(DifficultyTier.LOW, signals, FLOOR_THRESHOLDS)
        assert tier.rank >= DifficultyTier.MEDIUM.rank
        assert len(reasons) == 2

    def test_very_low_portability_forces_high(self):
        """UT-FL-03: Both portability floors fire; the higher one holds"""
        tier, reasons = apply_floors(DifficultyTier.LOW, ProjectSignals(portability_score=20), FLOOR_THRESHOLDS)
        assert tier is DifficultyTier.HIGH
        assert reasons == ["Low portability score (20%)", "Very low portability score (20%)"]

    def test_quiet_system_unchanged(self):
        """UT-FL-04: No signals, no floors"""
        tier, reasons = apply_floors(DifficultyTier.LOW, ProjectSignals(), FLOOR_THRESHOLDS)
        assert tier is DifficultyTier.LOW
        assert reasons == []

    def test_sample_signals(self, sample):
        """UT-FL-05: Signals gathered from facts and jobs"""
        programs, jobs, _ = sample
        signals = collect_project_signals(programs, jobs)
        assert signals.program_count == 2
        assert signals.has_relational_access
        assert signals.has_interactive
        assert signals.has_scheduled
        assert not signals.has_indexed_access
        assert (signals.longest_job, signals.longest_job_steps) == ("CUSTJOB", 2)


class TestProgramScore:
    """Logic / data / risk triad"""

    def test_sample_program_in_range(self, sample):
        """UT-PS-01: Every component stays within 0-100"""
        programs, _, _ = sample
        for score in ProgramComplexityScorer().score_all(programs):
            for value in (score.overall, score.logic, score.data, score.risk):
                assert 0 <= value <= 100
            assert score.tier in [t.value for t in DifficultyTier]

    def test_extreme_counts_are_capped(self):
        """UT-PS-02: Huge counts saturate instead of overflowing"""
        program = _program(
            "BIG",
            metrics=ProgramMetrics(code_lines=10, packed_decimal_count=100, assembler_call_count=100,
                                   complex_picture_count=100, sort_merge_count=100,
                                   uses_report_writer=True, copybook_count=100),
            control_flow=ControlFlowMetrics(cyclomatic=500, goto_count=100, evaluate_count=100,
                                            max_if_depth=9),
        )
        score = ProgramComplexityScorer().score(program)

        assert score.risk == 100
        assert score.logic <= 100
        assert score.overall <= 100
        assert "nested IF depth: 9 (+20)" in score.details["logic"]


class TestProjectScore:
    """Six dimensions with floors"""

    def test_sample_project(self, sample):
        """UT-PJS-01: Weighted score, then floors"""
        programs, jobs, xref = sample
        platform = PlatformAnalyzer().analyze(programs)
        score = ProjectComplexityScorer().score(programs, jobs, xref, platform)

        assert set(score.sub_scores) == set(get_config()["project_score_weights"])
        assert 0 <= score.overall <= 100
        before = DifficultyTier(score.tier_before_floors)
        after = DifficultyTier(score.tier)
        assert after.rank >= before.rank
        assert after.rank >= DifficultyTier.MEDIUM.rank
        assert "System has both interactive and scheduled processing modes" in score.floor_reasons

    def test_floors_lift_empty_score(self):
        """UT-PJS-02: A zero score still reaches Medium under mixed signals"""
        signals = ProjectSignals(has_indexed_access=True, has_relational_access=True,
                                 has_interactive=True, has_scheduled=True)
        score = ProjectComplexityScorer().score([], [], CrossReferenceGraph(), signals=signals)

        assert score.overall == 0
        assert score.tier_before_floors == "Low"
        assert score.tier == "Medium"
        assert len(score.floor_reasons) == 2
        assert score.factors["floors"] == score.floor_reasons


class TestMigrationImpact:
    """Effort, risks and ordering"""

    def test_effort_and_risks(self):
        """UT-MI-01: Unassessed programs count as Medium"""
        programs = [
            _program("A", external_calls=[ExternalCall(program_name="B", paragraph="MAIN", line_number=1)]),
            _program("B"),
        ]
        xref = CrossReferenceGraph(roots=["A"])
        score = ComplexityScore(overall=70, sub_scores={}, tier_before_floors="High",
                                tier="High", description="")
        signals = ProjectSignals(has_indexed_access=True, has_relational_access=True,
                                 has_interactive=True, has_scheduled=True,
                                 longest_job="J1", longest_job_steps=3, master_entities=6)

        impact = MigrationImpactEstimator().estimate(programs, xref, score, signals)

        assert impact.overall_complexity == "High"
        assert (impact.total_programs, impact.medium_complexity) == (2, 2)
        assert impact.estimated_program_days == 14
        assert [r.risk_id for r in impact.risks] == ["SYS1", "SYS2", "SYS3", "DR1"]
        assert impact.critical_paths[0].path_name == "Main Entry Point 1"
        assert impact.priority_order == ["B", "A"]
        assert "Consider a phased migration approach due to high system complexity" in impact.recommendations

    def test_sample_days(self, sample):
        """UT-MI-02: Days follow the per-program difficulty"""
        programs, jobs, xref = sample
        platform = PlatformAnalyzer().analyze(programs)
        signals = collect_project_signals(programs, jobs, platform)
        score = ProjectComplexityScorer().score(programs, jobs, xref, platform, signals=signals)
        impact = MigrationImpactEstimator().estimate(programs, xref, score, signals, platform)

        days = get_config()["effort_days"]
        expected = sum(days[p.assessment.overall_difficulty] for p in programs)
        assert impact.estimated_program_days == expected
        assert impact.overall_complexity == score.tier
        assert impact.risks[0].risk_id == "PR1"
