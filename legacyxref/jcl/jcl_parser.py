"""JCL Parser

Parses job and procedure members (.jcl, .prc, .proc) into:
- JOB definitions with job parameters and steps in running order
- EXEC steps: program or procedure, PARM, COND, REGION, TIME
- DD statements: dataset name, disposition, access mode, dataset type,
  DCB attributes, in-stream data
- PROC definitions up to PEND
- Derived program executions, dataset references, batch flow, metrics

Continued statements are folded first (see continuation.py). Statements
that cannot be recognised are skipped.
"""

import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union
import logging

from legacyxref.context import AnalysisContext
from legacyxref.source import SourceUnit, load_source
from .continuation import fold_with_line_numbers
from .models import (
    BatchFlow,
    DataFlowPath,
    DatasetFact,
    DatasetReference,
    JclFacts,
    JclMetrics,
    JobFact,
    ProcFact,
    ProcParameter,
    ProgramExecution,
    StepCondition,
    StepFact,
    is_temporary_dataset,
)

logger = logging.getLogger(__name__)

PROC_EXTENSIONS = ('.prc', '.proc')


class JclParser:
    """
    Parser for JCL members.

    Statements are recognised in priority order: JOB, EXEC, DD, IF/ELSE/
    ENDIF, PROC, PEND. A DD with no open step has nowhere to go and is
    reported as an anomaly.
    """

    def __init__(self):
        name = r'[A-Z0-9@#$]'
        self.job_pattern = re.compile(rf'^//({name}+)\s+JOB\b\s*(.*)')
        self.exec_pattern = re.compile(rf'^//({name}*)\s+EXEC\s+(.*)')
        self.dd_pattern = re.compile(rf'^//({name}*(?:\.{name}+)?)\s+DD\b\s*(.*)')
        self.if_pattern = re.compile(rf'^//{name}*\s+IF\b\s*(.*?)(?:\s+THEN)?\s*$')
        self.else_pattern = re.compile(rf'^//{name}*\s+ELSE\b')
        self.endif_pattern = re.compile(rf'^//{name}*\s+ENDIF\b')
        self.proc_pattern = re.compile(rf'^//({name}+)\s+PROC\b\s*(.*)')
        self.pend_pattern = re.compile(rf'^//{name}*\s+PEND\b')

        self.job_parameter_patterns = {
            "class": re.compile(r'(?<!MSG)CLASS=([A-Z0-9])'),
            "msgclass": re.compile(r'MSGCLASS=([A-Z0-9])'),
            "region": re.compile(r'REGION=([0-9]+[KM]?)'),
            "time": re.compile(r'TIME=\(?([0-9,]+)\)?'),
            "notify": re.compile(r'NOTIFY=([A-Z0-9@#$&.]+)'),
        }

        self.pgm_pattern = re.compile(r'\bPGM=([A-Z0-9@#$]+)')
        self.proc_name_pattern = re.compile(r'^(?:PROC=)?([A-Z0-9@#$]+)(?=,|\s|$)')
        self.parm_pattern = re.compile(
            r'\bPARM(?:\.[A-Z0-9@#$]+)?=(?:\'([^\']*)\'|"([^"]*)"|\(([^)]*)\)|([^,\s]+))',
            re.IGNORECASE
        )
        self.cond_pattern = re.compile(r'\bCOND=\(([^)]+)\)')
        self.region_pattern = re.compile(r'REGION=([0-9]+[KM]?)')
        self.time_pattern = re.compile(r'TIME=\(?([0-9,]+)\)?')

        self.dsn_pattern = re.compile(r'DSN(?:AME)?=([A-Z0-9@#$.&()\-+]+)')
        self.disp_pattern = re.compile(r'DISP=(?:\(([^)]*)\)|([A-Z]+))')
        self.recfm_pattern = re.compile(r'RECFM=([A-Z]+)')
        self.lrecl_pattern = re.compile(r'LRECL=(\d+)')
        self.blksize_pattern = re.compile(r'BLKSIZE=(\d+)')

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def parse_file(self, path: Union[str, Path],
                   context: Optional[AnalysisContext] = None) -> JclFacts:
        return self.parse(load_source(path), context)

    def parse(self, source: SourceUnit, context: Optional[AnalysisContext] = None) -> JclFacts:
        """
        Parse one JCL member.

        Args:
            source: Loaded JCL source
            context: Run context receiving anomalies and the column limit

        Returns:
            JclFacts; empty apart from the source path when the source has
            no lines
        """
        context = context or AnalysisContext()
        source_path = str(source.path) if source.path else source.name
        facts = JclFacts(source_path=source_path)

        if source.is_empty:
            facts.anomalies.append(context.record_anomaly(
                "EMPTY_SOURCE", source.name, detail="no readable lines"))
            context.skipped_files.append(source_path)
            return facts

        max_column = int(context.config.get("jcl", {}).get("max_column", 72))
        statements = fold_with_line_numbers(source.lines, max_column)

        facts.file_type = self.determine_file_type(source, statements)
        self._parse_statements(statements, facts, source, context)

        facts.program_executions = self.extract_program_executions(facts.jobs)
        facts.dataset_references = self.extract_dataset_references(facts.jobs)
        facts.batch_flow = self.build_batch_flow(facts.jobs)
        facts.metrics = self.calculate_metrics(facts, len(source))

        logger.info(
            f"Parsed {source.name}: {len(facts.jobs)} job(s), "
            f"{len(facts.procedures)} proc(s), {facts.metrics.total_steps} steps"
        )
        return facts

    def determine_file_type(self, source: SourceUnit,
                            statements: List[Tuple[int, str]]) -> str:
        if source.path is not None and source.path.suffix.lower() in PROC_EXTENSIONS:
            return "PROC"

        has_proc = False
        for _, text in statements:
            upper = text.upper()
            if self.job_pattern.match(upper):
                return "JOB"
            if self.proc_pattern.match(upper):
                has_proc = True
        return "PROC" if has_proc else "JOB"

    # ------------------------------------------------------------------
    # Statement scan
    # ------------------------------------------------------------------

    def _parse_statements(self, statements: List[Tuple[int, str]], facts: JclFacts,
                          source: SourceUnit, context: AnalysisContext) -> None:
        job: Optional[JobFact] = None
        proc: Optional[ProcFact] = None
        step: Optional[StepFact] = None
        step_number = 0
        if_stack: List[str] = []
        i = 0

        def close_step():
            nonlocal step
            if step is None:
                return
            if proc is not None:
                proc.steps.append(step)
            elif job is not None:
                job.steps.append(step)
            step = None

        while i < len(statements):
            line_number, text = statements[i]
            upper = text.upper()
            i += 1

            if not upper.startswith('//') or upper.startswith('//*'):
                continue

            match = self.job_pattern.match(upper)
            if match:
                close_step()
                proc = None
                job = JobFact(job_name=match.group(1),
                              parameters=self._parse_job_parameters(match.group(2)),
                              line_number=line_number)
                facts.jobs.append(job)
                step_number = 0
                continue

            match = self.exec_pattern.match(upper)
            if match:
                close_step()
                step_number += 1
                step = self._parse_exec(match.group(1) or f"STEP{step_number}",
                                        match.group(2), text, step_number)
                step.line_number = line_number
                if if_stack and step.condition is None:
                    step.condition = StepCondition(condition_type="IF", expression=if_stack[-1])
                    step.is_conditional = True
                continue

            match = self.dd_pattern.match(upper)
            if match:
                if step is None:
                    facts.anomalies.append(context.record_anomaly(
                        "UNATTACHED_DD", source.name, line_number=line_number,
                        name=match.group(1), detail="DD statement before any EXEC step",
                    ))
                    continue
                dd_name = match.group(1) or self._concatenation_name(step)
                dd = self._parse_dd(dd_name, match.group(2))
                dd.line_number = line_number
                if dd.dataset_type == "INSTREAM":
                    dd.instream_data, i = self._collect_instream(statements, i)
                step.dd_statements.append(dd)
                continue

            match = self.if_pattern.match(upper)
            if match:
                if_stack.append(match.group(1).strip())
                continue
            if self.else_pattern.match(upper):
                if if_stack:
                    if_stack[-1] = f"NOT ({if_stack[-1]})"
                continue
            if self.endif_pattern.match(upper):
                if if_stack:
                    if_stack.pop()
                continue

            match = self.proc_pattern.match(upper)
            if match:
                close_step()
                proc = ProcFact(proc_name=match.group(1),
                                parameters=self._parse_proc_parameters(match.group(2)),
                                line_number=line_number)
                facts.procedures.append(proc)
                step_number = 0
                continue

            if self.pend_pattern.match(upper):
                close_step()
                proc = None
                step_number = len(job.steps) if job else 0

        close_step()

    @staticmethod
    def _concatenation_name(step: StepFact) -> str:
        # An unnamed DD continues the previous DD's concatenation
        return step.dd_statements[-1].dd_name if step.dd_statements else ""

    @staticmethod
    def _collect_instream(statements: List[Tuple[int, str]], i: int) -> Tuple[List[str], int]:
        data = []
        while i < len(statements):
            text = statements[i][1]
            if text.startswith('/*'):
                return data, i + 1
            if text.startswith('//') and not text.startswith('//*'):
                return data, i
            data.append(text)
            i += 1
        return data, i

    # ------------------------------------------------------------------
    # Statement operands
    # ------------------------------------------------------------------

    def _parse_job_parameters(self, params: str) -> Dict[str, str]:
        parameters = {}
        for key, pattern in self.job_parameter_patterns.items():
            match = pattern.search(params)
            if match:
                parameters[key] = match.group(1)
        return parameters

    def _parse_exec(self, step_name: str, params: str, raw: str, step_number: int) -> StepFact:
        step = StepFact(step_name=step_name, step_number=step_number)

        pgm = self.pgm_pattern.search(params)
        if pgm:
            step.program_name = pgm.group(1)
        else:
            proc = self.proc_name_pattern.search(params.strip())
            if proc:
                step.proc_name = proc.group(1)
                step.program_name = f"PROC:{proc.group(1)}"

        parm = self.parm_pattern.search(raw)
        if parm:
            step.parm = next(group for group in parm.groups() if group is not None)

        cond = self.cond_pattern.search(params)
        if cond:
            step.is_conditional = True
            step.condition = self._parse_condition(cond.group(1))

        region = self.region_pattern.search(params)
        if region:
            step.region = region.group(1)

        time = self.time_pattern.search(params)
        if time:
            step.time = time.group(1)

        return step

    @staticmethod
    def _parse_condition(expression: str) -> StepCondition:
        condition = StepCondition(condition_type="COND", expression=expression)

        # (code,operator) or (code,operator,stepname)
        parts = [p.strip() for p in expression.strip('()').split(',')]
        if len(parts) >= 2 and parts[0].isdigit():
            condition.check_code = int(parts[0])
            condition.operator = parts[1]
            if len(parts) >= 3 and parts[2]:
                condition.reference_step = parts[2]
        return condition

    def _parse_dd(self, dd_name: str, params: str) -> DatasetFact:
        dd = DatasetFact(dd_name=dd_name)
        operands = params.strip()

        if 'SYSOUT=' in operands:
            dd.dataset_type = "SYSOUT"
            dd.access_mode = "OUTPUT"
            return dd

        first = re.split(r'[\s,]', operands, maxsplit=1)[0] if operands else ""
        if first in ('*', 'DATA'):
            dd.dataset_type = "INSTREAM"
            dd.access_mode = "INPUT"
            return dd

        if first == 'DUMMY' or 'DUMMY' in operands.split(','):
            dd.dataset_type = "TEMP"
            return dd

        dsn = self.dsn_pattern.search(operands)
        if dsn:
            dd.dataset_name = dsn.group(1)
            if is_temporary_dataset(dd.dataset_name):
                dd.is_temporary = True
                dd.dataset_type = "TEMP"
            if any(marker in dd.dataset_name for marker in ('.VSAM.', '.KSDS.', '.ESDS.', '.RRDS.')):
                dd.dataset_type = "VSAM"
            elif '(+' in dd.dataset_name or '(-' in dd.dataset_name:
                dd.dataset_type = "GDG"

        disp = self.disp_pattern.search(operands)
        if disp:
            dd.disposition = disp.group(1) if disp.group(1) is not None else disp.group(2)
            dd.access_mode = self.infer_access_mode(dd.disposition)

        recfm = self.recfm_pattern.search(operands)
        if recfm:
            dd.recfm = recfm.group(1)
        lrecl = self.lrecl_pattern.search(operands)
        if lrecl:
            dd.lrecl = int(lrecl.group(1))
        blksize = self.blksize_pattern.search(operands)
        if blksize:
            dd.blksize = int(blksize.group(1))

        if dd.dataset_type == "UNKNOWN" and dd.recfm and ('F' in dd.recfm or 'V' in dd.recfm):
            dd.dataset_type = "SEQUENTIAL"

        return dd

    @staticmethod
    def infer_access_mode(disposition: str) -> str:
        """Map the DISP status subparameter to an access mode"""
        status = disposition.split(',')[0].strip().upper()
        if status in ('', 'NEW', 'MOD'):
            return "OUTPUT"
        if status == 'OLD':
            return "I-O"
        if status == 'SHR':
            return "INPUT"
        return "UNKNOWN"

    @staticmethod
    def _parse_proc_parameters(params: str) -> List[ProcParameter]:
        parameters = []
        for pair in params.split(','):
            pair = pair.strip()
            if not pair:
                continue
            name, sep, default = pair.partition('=')
            if sep and name:
                parameters.append(ProcParameter(name=name, default_value=default))
            elif not sep:
                parameters.append(ProcParameter(name=pair))
        return parameters

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    @staticmethod
    def extract_program_executions(jobs: List[JobFact]) -> List[ProgramExecution]:
        executions = []
        order = 0

        for job in jobs:
            for step in job.steps:
                if step.runs_proc:
                    continue
                order += 1
                inputs, outputs = [], []
                for dd in step.dd_statements:
                    if not dd.dataset_name:
                        continue
                    if dd.access_mode in ("INPUT", "I-O"):
                        inputs.append(dd.dataset_name)
                    if dd.access_mode in ("OUTPUT", "I-O"):
                        outputs.append(dd.dataset_name)

                executions.append(ProgramExecution(
                    program_name=step.program_name,
                    step_name=step.step_name,
                    job_name=job.job_name,
                    execution_order=order,
                    input_datasets=inputs,
                    output_datasets=outputs,
                    parameters=step.parm,
                ))

        return executions

    @staticmethod
    def extract_dataset_references(jobs: List[JobFact]) -> List[DatasetReference]:
        references: Dict[str, DatasetReference] = {}

        for job in jobs:
            for step in job.steps:
                for dd in step.dd_statements:
                    if not dd.dataset_name or dd.is_temporary:
                        continue
                    ref = references.setdefault(dd.dataset_name, DatasetReference(
                        dataset_name=dd.dataset_name,
                        dd_name=dd.dd_name,
                        access_mode=dd.access_mode,
                        dataset_type=dd.dataset_type,
                    ))
                    if step.program_name not in ref.used_by_programs:
                        ref.used_by_programs.append(step.program_name)
                    if step.step_name not in ref.used_in_steps:
                        ref.used_in_steps.append(step.step_name)

        return list(references.values())

    @staticmethod
    def build_batch_flow(jobs: List[JobFact]) -> Optional[BatchFlow]:
        """
        Running order plus data hand-offs.

        A path runs from the step that last wrote a dataset (DISP NEW/MOD)
        to each later step that reads it (DISP SHR/OLD).
        """
        if not jobs:
            return None

        flow = BatchFlow(flow_name=jobs[0].job_name)
        producers: Dict[str, str] = {}

        for job in jobs:
            for step in job.steps:
                step_id = f"{job.job_name}.{step.step_name}"
                flow.execution_order.append(step_id)

                for dd in step.dd_statements:
                    name = dd.dataset_name
                    if name and dd.access_mode in ("INPUT", "I-O") and name in producers:
                        flow.data_flow_paths.append(DataFlowPath(
                            source_dataset=name,
                            target_dataset=name,
                            producer_step=producers[name],
                            consumer_step=step_id,
                        ))

                for dd in step.dd_statements:
                    if dd.dataset_name and dd.access_mode == "OUTPUT":
                        producers[dd.dataset_name] = step_id

        return flow

    @staticmethod
    def calculate_metrics(facts: JclFacts, total_lines: int) -> JclMetrics:
        metrics = JclMetrics(total_lines=total_lines)
        programs = set()
        datasets = set()

        all_steps = [s for job in facts.jobs for s in job.steps]
        all_steps += [s for proc in facts.procedures for s in proc.steps]

        for step in all_steps:
            metrics.total_steps += 1
            metrics.total_dd_statements += len(step.dd_statements)
            programs.add(step.program_name)
            if step.is_conditional:
                metrics.conditional_steps += 1
            for dd in step.dd_statements:
                if dd.dataset_name and not dd.is_temporary:
                    datasets.add(dd.dataset_name)

        metrics.unique_programs = len(programs)
        metrics.unique_datasets = len(datasets)
        return metrics
