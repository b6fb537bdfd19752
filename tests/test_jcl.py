"""Job control extraction"""

from legacyxref.jcl import JclParser, fold_continuations
from legacyxref.source import SourceUnit


def _parse(text, name="TEST.jcl", context=None):
    return JclParser().parse(SourceUnit.from_text(text, name), context)


class TestContinuation:
    """Statement folding"""

    def test_trailing_comma_continues(self):
        """UT-JC-01: Continued operands fold into one statement"""
        folded = fold_continuations([
            "//OUT      DD DSN=A.B.C,",
            "//            DISP=(NEW,CATLG),",
            "//            LRECL=80",
            "//NEXT     DD DUMMY",
        ])
        assert folded == [
            "//OUT      DD DSN=A.B.C, DISP=(NEW,CATLG), LRECL=80",
            "//NEXT     DD DUMMY",
        ]

    def test_sequence_columns_dropped(self):
        """UT-JC-02: Columns past 72 are ignored before folding"""
        line = "//STEP1    EXEC PGM=ABC".ljust(72) + "00010000"
        assert fold_continuations([line]) == ["//STEP1    EXEC PGM=ABC"]

    def test_pending_statement_flushed(self):
        """UT-JC-03: A continuation open at end of input is still emitted"""
        assert fold_continuations(["//IN DD DSN=X,"]) == ["//IN DD DSN=X,"]

    def test_comments_never_continue(self):
        """UT-JC-04: //* lines stay as they are"""
        assert fold_continuations(["//* A, B,", "//S1 EXEC PGM=X"]) == ["//* A, B,", "//S1 EXEC PGM=X"]


class TestJclParser:
    """JOB, EXEC and DD statements"""

    def test_job_and_steps(self, custjob_source):
        """UT-JP-01: Job parameters and steps in running order"""
        facts = JclParser().parse(custjob_source)

        assert facts.file_type == "JOB"
        assert len(facts.jobs) == 1
        job = facts.jobs[0]
        assert job.job_name == "CUSTJOB"
        assert job.parameters == {"class": "A", "msgclass": "X"}
        assert [(s.step_name, s.program_name) for s in job.steps] == [
            ("STEP1", "CUSTUPD"),
            ("STEP2", "CUSTRPT"),
        ]

    def test_parm_and_cond(self, custjob_source):
        """UT-JP-02: Quoted PARM keeps its commas; COND is decoded"""
        steps = JclParser().parse(custjob_source).jobs[0].steps

        assert steps[0].parm == "DAILY,RUN"
        assert not steps[0].is_conditional

        cond = steps[1].condition
        assert steps[1].is_conditional
        assert (cond.condition_type, cond.check_code, cond.operator) == ("COND", 4, "LT")

    def test_dd_statements(self, custjob_source):
        """UT-JP-03: Disposition, access mode and dataset type per DD"""
        steps = JclParser().parse(custjob_source).jobs[0].steps
        step1 = {dd.dd_name: dd for dd in steps[0].dd_statements}
        step2 = {dd.dd_name: dd for dd in steps[1].dd_statements}

        assert step1["CUSTIN"].dataset_name == "PROD.CUST.MASTER"
        assert step1["CUSTIN"].access_mode == "INPUT"

        out = step1["RPTOUT"]
        assert out.disposition == "NEW,CATLG,DELETE"
        assert out.access_mode == "OUTPUT"
        assert out.dataset_type == "SEQUENTIAL"
        assert (out.recfm, out.lrecl) == ("FB", 133)
        assert out.line_number == 4

        assert step2["SYSOUT"].dataset_type == "SYSOUT"
        assert step2["SYSIN"].dataset_type == "INSTREAM"
        assert step2["SYSIN"].instream_data == ["  CONTROL CARD 1"]

    def test_disposition_mapping(self):
        """UT-JP-04: DISP status maps to an access mode"""
        assert JclParser.infer_access_mode("SHR") == "INPUT"
        assert JclParser.infer_access_mode("OLD,KEEP") == "I-O"
        assert JclParser.infer_access_mode("NEW,CATLG,DELETE") == "OUTPUT"
        assert JclParser.infer_access_mode("MOD") == "OUTPUT"
        assert JclParser.infer_access_mode(",CATLG") == "OUTPUT"
        assert JclParser.infer_access_mode("KEEP") == "UNKNOWN"

    def test_batch_flow_single_path(self, custjob_source):
        """UT-JP-05: One dataset written by STEP1 and read by STEP2"""
        flow = JclParser().parse(custjob_source).batch_flow

        assert flow.flow_name == "CUSTJOB"
        assert flow.execution_order == ["CUSTJOB.STEP1", "CUSTJOB.STEP2"]
        assert len(flow.data_flow_paths) == 1
        path = flow.data_flow_paths[0]
        assert path.source_dataset == "PROD.CUST.REPORT"
        assert path.producer_step == "CUSTJOB.STEP1"
        assert path.consumer_step == "CUSTJOB.STEP2"
        assert path.flow_type == "SEQUENTIAL"

    def test_program_executions(self, custjob_source):
        """UT-JP-06: Inputs and outputs per executed program"""
        executions = JclParser().parse(custjob_source).program_executions

        assert [(e.program_name, e.execution_order) for e in executions] == [("CUSTUPD", 1), ("CUSTRPT", 2)]
        assert executions[0].input_datasets == ["PROD.CUST.MASTER"]
        assert executions[0].output_datasets == ["PROD.CUST.REPORT"]
        assert executions[0].parameters == "DAILY,RUN"
        assert executions[1].input_datasets == ["PROD.CUST.REPORT"]

    def test_dataset_references_and_metrics(self, custjob_source):
        """UT-JP-07: Permanent datasets and the member's counts"""
        facts = JclParser().parse(custjob_source)

        refs = {r.dataset_name: r for r in facts.dataset_references}
        assert set(refs) == {"PROD.CUST.MASTER", "PROD.CUST.REPORT"}
        assert refs["PROD.CUST.REPORT"].used_by_programs == ["CUSTUPD", "CUSTRPT"]

        metrics = facts.metrics
        assert metrics.total_lines == 12
        assert metrics.total_steps == 2
        assert metrics.total_dd_statements == 5
        assert metrics.unique_programs == 2
        assert metrics.unique_datasets == 2
        assert metrics.conditional_steps == 1

    def test_temporary_and_generation_datasets(self):
        """UT-JP-08: && names are temporary; relative generations are GDG"""
        facts = _parse(
            "//J1 JOB CLASS=A\n"
            "//S1 EXEC PGM=SORTIT\n"
            "//WORK DD DSN=&&TEMP,DISP=(NEW,PASS)\n"
            "//OUT  DD DSN=PROD.HIST(+1),DISP=(NEW,CATLG)\n"
            "//KS   DD DSN=PROD.VSAM.CUST,DISP=SHR\n"
        )
        dds = {dd.dd_name: dd for dd in facts.jobs[0].steps[0].dd_statements}
        assert dds["WORK"].is_temporary
        assert dds["OUT"].dataset_type == "GDG"
        assert dds["KS"].dataset_type == "VSAM"
        assert "&&TEMP" not in {r.dataset_name for r in facts.dataset_references}

    def test_proc_step_and_concatenation(self):
        """UT-JP-09: EXEC of a procedure and an unnamed concatenated DD"""
        facts = _parse(
            "//J1 JOB CLASS=A\n"
            "//S1 EXEC DAILYPRC\n"
            "//S2 EXEC PGM=LOADER\n"
            "//IN DD DSN=A.ONE,DISP=SHR\n"
            "//   DD DSN=A.TWO,DISP=SHR\n"
        )
        steps = facts.jobs[0].steps
        assert steps[0].program_name == "PROC:DAILYPRC"
        assert steps[0].runs_proc
        assert [e.program_name for e in facts.program_executions] == ["LOADER"]
        assert [dd.dd_name for dd in steps[1].dd_statements] == ["IN", "IN"]

    def test_if_block_marks_steps_conditional(self):
        """UT-JP-10: Steps inside // IF take the IF expression"""
        facts = _parse(
            "//J1 JOB CLASS=A\n"
            "//S1 EXEC PGM=ONE\n"
            "//CHK IF (S1.RC = 0) THEN\n"
            "//S2 EXEC PGM=TWO\n"
            "//   ELSE\n"
            "//S3 EXEC PGM=THREE\n"
            "//   ENDIF\n"
            "//S4 EXEC PGM=FOUR\n"
        )
        steps = {s.step_name: s for s in facts.jobs[0].steps}
        assert not steps["S1"].is_conditional
        assert steps["S2"].condition.expression == "(S1.RC = 0)"
        assert steps["S3"].condition.expression == "NOT ((S1.RC = 0))"
        assert not steps["S4"].is_conditional

    def test_proc_member(self):
        """UT-JP-11: PROC definitions with symbolic parameters"""
        facts = _parse(
            "//DAILYPRC PROC ENV=PROD,DAY\n"
            "//P1 EXEC PGM=EXTRACT\n"
            "//   PEND\n",
            name="DAILY.prc",
        )
        assert facts.file_type == "PROC"
        proc = facts.procedures[0]
        assert proc.proc_name == "DAILYPRC"
        assert [(p.name, p.default_value) for p in proc.parameters] == [("ENV", "PROD"), ("DAY", None)]
        assert [s.program_name for s in proc.steps] == ["EXTRACT"]
        assert facts.jobs == []

    def test_unattached_dd_is_anomaly(self, context):
        """UT-JP-12: A DD before any EXEC has nowhere to go"""
        facts = _parse(
            "//J1 JOB CLASS=A\n"
            "//IN DD DSN=A.B,DISP=SHR\n"
            "//S1 EXEC PGM=ONE\n",
            context=context,
        )
        assert [a.kind for a in facts.anomalies] == ["UNATTACHED_DD"]
        assert facts.anomalies[0].line_number == 2
        assert facts.jobs[0].steps[0].dd_statements == []
        assert context.anomalies == facts.anomalies
        assert context.anomalies_for("TEST.jcl") == facts.anomalies
        assert context.anomalies_for("OTHER.jcl") == []

    def test_multiple_job_cards(self):
        """UT-JP-13: A second JOB card starts a new job"""
        facts = _parse(
            "//J1 JOB CLASS=A\n"
            "//S1 EXEC PGM=ONE\n"
            "//J2 JOB CLASS=B\n"
            "//S1 EXEC PGM=TWO\n"
        )
        assert [j.job_name for j in facts.jobs] == ["J1", "J2"]
        assert [e.execution_order for e in facts.program_executions] == [1, 2]

    def test_empty_member(self, context):
        """UT-JP-14: A zero-line member is skipped"""
        facts = _parse("", name="EMPTY.jcl", context=context)
        assert facts.is_empty
        assert facts.batch_flow is None
        assert [a.kind for a in facts.anomalies] == ["EMPTY_SOURCE"]
        assert context.skipped_files == ["EMPTY.jcl"]
