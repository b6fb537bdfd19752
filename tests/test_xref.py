"""Cross-reference graph"""

import pytest

from legacyxref.classification.role_classifier import jcl_executed_programs
from legacyxref.jcl import JclParser
from legacyxref.source import SourceUnit
from legacyxref.static_analysis import ProgramAnalyzer
from legacyxref.static_analysis.models import DataAccessFact, ExternalCall, ProgramFacts
from legacyxref.xref import CrossReferenceBuilder, generate_xref_report, program_key
from legacyxref.xref.graph_builder import call_graph_is_acyclic
from legacyxref.xref.models import MIXED, READ, WRITE, EntityAccessRecord


def _program(program_id, calls=(), access=()):
    return ProgramFacts(
        source_path=f"{program_id}.cbl",
        program_id=program_id,
        content="       PROCEDURE DIVISION.",
        external_calls=[ExternalCall(program_name=name, paragraph="MAIN", line_number=line,
                                     is_dynamic=dynamic)
                        for name, line, dynamic in calls],
        data_access=[DataAccessFact(entity=table, operation=op, paragraph=para, line_number=line)
                     for table, op, para, line in access],
    )


@pytest.fixture
def project_xref(custupd_source, custinq_source, custjob_source, context):
    analyzer = ProgramAnalyzer()
    programs = [analyzer.analyze(custupd_source, context), analyzer.analyze(custinq_source, context)]
    jobs = [JclParser().parse(custjob_source, context)]
    return CrossReferenceBuilder().build(programs, jobs, ["CUSTCOPY", "OLDCOPY"])


class TestCallGraph:
    """Program-to-program calls"""

    def test_nodes_and_external_callees(self, project_xref):
        """UT-XR-01: Unanalyzed callees become EXTERNAL nodes"""
        nodes = project_xref.nodes
        assert list(nodes) == ["CUSTUPD", "CUSTINQ", "AUDITLOG"]
        assert nodes["CUSTUPD"].node_type == "ANALYZED"
        assert nodes["CUSTUPD"].source_path == "CUSTUPD.cbl"
        assert nodes["AUDITLOG"].node_type == "EXTERNAL"
        assert nodes["AUDITLOG"].source_path is None

    def test_edges_and_counts(self, project_xref):
        """UT-XR-02: Edges record callers on both nodes"""
        assert [(e.caller, e.callee, e.call_type) for e in project_xref.edges] == [
            ("CUSTUPD", "AUDITLOG", "STATIC"),
            ("CUSTINQ", "CUSTUPD", "STATIC"),
        ]
        custupd = project_xref.node("CUSTUPD")
        assert custupd.calls == ["AUDITLOG"]
        assert custupd.called_by == ["CUSTINQ"]
        assert custupd.call_count == 1
        assert custupd.caller_count == 1

    def test_roots_leaves_and_depth(self, project_xref):
        """UT-XR-03: Entry points, leaves and the longest chain"""
        assert project_xref.roots == ["CUSTINQ"]
        assert project_xref.leaves == ["AUDITLOG"]
        assert project_xref.statistics.max_call_depth == 2
        assert call_graph_is_acyclic(project_xref)

    def test_duplicate_call_sites_collapse(self):
        """UT-XR-04: The same call site reported twice is one edge"""
        program = _program("A", calls=[("B", 10, False), ("B", 10, False), ("B", 20, False)])
        xref = CrossReferenceBuilder().build([program], [])

        assert len(xref.edges) == 2
        assert xref.node("A").call_count == 2
        assert xref.node("B").caller_count == 1
        assert xref.graph["A"]["B"]["lines"] == [10, 20]

    def test_dynamic_call_edge(self):
        """UT-XR-05: Calls through a data item are DYNAMIC"""
        program = _program("A", calls=[("WS-TARGET", 5, True)])
        xref = CrossReferenceBuilder().build([program], [])
        assert xref.edges[0].call_type == "DYNAMIC"
        assert xref.node("WS-TARGET").node_type == "EXTERNAL"

    def test_cycle_depth_is_finite(self):
        """UT-XR-06: Mutual recursion still yields a bounded depth"""
        programs = [
            _program("A", calls=[("B", 1, False)]),
            _program("B", calls=[("A", 1, False)]),
            _program("C", calls=[("A", 1, False)]),
        ]
        xref = CrossReferenceBuilder().build(programs, [])

        assert not call_graph_is_acyclic(xref)
        assert xref.roots == ["C"]
        assert xref.statistics.max_call_depth == 3

    def test_pure_cycle_has_no_roots(self):
        """UT-XR-07: A cycle with no entry point has depth 0"""
        programs = [_program("A", calls=[("B", 1, False)]), _program("B", calls=[("A", 1, False)])]
        xref = CrossReferenceBuilder().build(programs, [])
        assert xref.roots == []
        assert xref.statistics.max_call_depth == 0

    def test_empty_programs_ignored(self):
        """UT-XR-08: Facts of an empty source contribute nothing"""
        xref = CrossReferenceBuilder().build([ProgramFacts(source_path="EMPTY.cbl")], [])
        assert xref.nodes == {}
        assert xref.statistics.total_programs == 0

    def test_program_key_falls_back_to_stem(self):
        """UT-XR-09: No PROGRAM-ID means the file name identifies the program"""
        facts = ProgramFacts(source_path="/src/cbl/payroll.cbl", content="x")
        assert program_key(facts) == "PAYROLL"


class TestEntityAccess:
    """Table and file access records"""

    def test_tables_and_files(self, project_xref):
        """UT-XR-10: SQL tables and assigned files are both entities"""
        entities = project_xref.entity_to_programs
        assert set(entities) == {"CUSTOMER", "CUSTIN", "RPTOUT"}

        customer = {r.program_id: r for r in entities["CUSTOMER"]}
        assert customer["CUSTUPD"].access_type == "UPDATE"
        assert customer["CUSTUPD"].paragraphs == ["UPDATE-PARA"]
        assert customer["CUSTINQ"].access_type == READ

        custin = entities["CUSTIN"][0]
        assert (custin.source, custin.access_type, custin.access_count) == ("FILE", READ, 3)
        assert entities["RPTOUT"][0].access_type == WRITE

        assert project_xref.program_to_entities["CUSTUPD"] == ["CUSTOMER", "CUSTIN", "RPTOUT"]

    def test_mixed_promotion(self):
        """UT-XR-11: Reading and updating the same table is MIXED"""
        program = _program("A", access=[("ACCT", "SELECT", "P1", 1), ("ACCT", "UPDATE", "P2", 2)])
        record = CrossReferenceBuilder().build([program], []).entity_record("ACCT", "A")

        assert record.access_type == MIXED
        assert record.access_count == 2
        assert record.paragraphs == ["P1", "P2"]

    def test_assigned_file_is_one_entity(self):
        """UT-XR-19: Period-terminated and bare ASSIGN TO share one entity key"""
        analyzer = ProgramAnalyzer()
        programs = [
            analyzer.analyze(SourceUnit.from_text(
                f"       IDENTIFICATION DIVISION.\n"
                f"       PROGRAM-ID. {name}.\n"
                f"           SELECT IN-FILE ASSIGN TO CUSTIN{end}\n"
                f"       PROCEDURE DIVISION.\n"
                f"           OPEN INPUT IN-FILE.\n", f"{name}.cbl"))
            for name, end in (("PGMA", "."), ("PGMB", ""))
        ]
        xref = CrossReferenceBuilder().build(programs, [])

        assert set(xref.entity_to_programs) == {"CUSTIN"}
        assert [r.program_id for r in xref.entity_to_programs["CUSTIN"]] == ["PGMA", "PGMB"]
        assert xref.program_to_entities == {"PGMA": ["CUSTIN"], "PGMB": ["CUSTIN"]}

    def test_mixed_never_demoted(self):
        """UT-XR-12: Once MIXED, further accesses keep it MIXED"""
        record = EntityAccessRecord(entity="T", program_id="P", access_type=READ)
        record.record(READ)
        assert record.access_type == READ
        record.record(WRITE)
        assert record.access_type == MIXED
        record.record(READ)
        record.record(MIXED)
        assert record.access_type == MIXED
        assert record.access_count == 4


class TestJobsAndCopybooks:
    """JCL links, copybook usage and statistics"""

    def test_job_references(self, project_xref):
        """UT-XR-13: Job steps link programs, analyzed or not"""
        assert project_xref.job_to_programs == {"CUSTJOB": ["CUSTUPD", "CUSTRPT"]}
        ref = project_xref.program_to_jobs["CUSTUPD"][0]
        assert (ref.job_name, ref.step_name, ref.execution_order) == ("CUSTJOB", "STEP1", 1)
        assert ref.output_datasets == ["PROD.CUST.REPORT"]

    def test_dataset_references(self, project_xref):
        """UT-XR-14: Datasets list every program that touches them"""
        refs = project_xref.dataset_to_programs["PROD.CUST.REPORT"]
        assert [r.program_id for r in refs] == ["CUSTUPD", "CUSTRPT"]
        assert refs[0].jcl_steps == ["STEP1", "STEP2"]

    def test_copybooks(self, project_xref):
        """UT-XR-15: Used and orphaned copybooks"""
        assert project_xref.program_to_copybooks == {"CUSTUPD": ["CUSTCOPY"], "CUSTINQ": []}
        assert project_xref.copybook_to_programs == {"CUSTCOPY": ["CUSTUPD"]}
        assert project_xref.orphaned_copybooks == ["OLDCOPY"]

    def test_unreferenced_programs(self, project_xref):
        """UT-XR-16: Neither called nor scheduled"""
        assert project_xref.unreferenced_programs == ["CUSTINQ"]

    def test_temporary_datasets_left_out_of_job_references(self):
        """UT-XR-20: && hand-offs stay in the batch flow, not in the job map"""
        jcl = JclParser().parse(SourceUnit.from_text(
            "//J1 JOB CLASS=A\n"
            "//S1 EXEC PGM=P1\n"
            "//WORK DD DSN=&&TEMP,DISP=(NEW,PASS)\n"
            "//S2 EXEC PGM=P2\n"
            "//WORK DD DSN=&&TEMP,DISP=(OLD,DELETE)\n"
            "//OUT  DD DSN=PROD.OUT,DISP=(NEW,CATLG)\n",
            "J1.jcl",
        ))
        xref = CrossReferenceBuilder().build([], [jcl])

        p1, p2 = xref.program_to_jobs["P1"][0], xref.program_to_jobs["P2"][0]
        assert (p1.input_datasets, p1.output_datasets) == ([], [])
        assert (p2.input_datasets, p2.output_datasets) == ([], ["PROD.OUT"])
        assert [p.source_dataset for p in jcl.batch_flow.data_flow_paths] == ["&&TEMP"]

    def test_procedure_step_programs_are_referenced(self):
        """UT-XR-21: A program run only from a PROC is not unreferenced"""
        proc = JclParser().parse(SourceUnit.from_text(
            "//DAILYPRC PROC\n"
            "//P1 EXEC PGM=EXTRACT\n"
            "//   PEND\n",
            "DAILY.prc",
        ))
        programs = [_program("EXTRACT"), _program("ORPHAN")]
        xref = CrossReferenceBuilder().build(programs, [proc])

        assert "EXTRACT" not in xref.program_to_jobs
        assert xref.unreferenced_programs == ["ORPHAN"]
        assert jcl_executed_programs([proc]) == {"EXTRACT"}

    def test_statistics(self, project_xref):
        """UT-XR-17: Counts and averages"""
        stats = project_xref.statistics
        assert stats.total_programs == 2
        assert stats.total_copybooks == 2
        assert stats.total_jcl_jobs == 1
        assert stats.total_entities == 3
        assert stats.total_call_relationships == 2
        assert stats.average_copybooks_per_program == 0.5
        assert stats.average_calls_per_program == 1.0

    def test_to_dict_is_plain(self, project_xref):
        """UT-XR-18: Serialized graph holds only plain data"""
        data = project_xref.to_dict()
        assert "graph" not in data
        assert data["nodes"]["AUDITLOG"]["node_type"] == "EXTERNAL"
        assert data["statistics"]["max_call_depth"] == 2


def test_xref_report(project_xref):
    report = generate_xref_report(project_xref)
    assert "CROSS-REFERENCE SUMMARY" in report
    assert "  Max Call Depth: 2" in report
    assert "EXTERNAL PROGRAMS (1):\n  - AUDITLOG" in report
    assert "ORPHANED COPYBOOKS (1):\n  - OLDCOPY" in report
    assert "ENTITY ACCESS:" in report


def test_xref_report_truncates_long_sections():
    xref = CrossReferenceBuilder().build([], [], [f"COPY{i}" for i in range(5)])
    report = generate_xref_report(xref, max_items=2)
    assert "ORPHANED COPYBOOKS (5):" in report
    assert "  ... and 3 more" in report
    assert "ROOT PROGRAMS" not in report
