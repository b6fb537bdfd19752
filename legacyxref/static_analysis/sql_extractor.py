"""Embedded SQL Extractor

Collects EXEC SQL ... END-EXEC blocks and turns each into a data access fact:
- Operation (SELECT > INSERT > UPDATE > DELETE, first keyword wins)
- Target table, column list, WHERE text
- Owning paragraph and starting line

Blocks may span any number of lines. A block still open at end of file
produces no fact.
"""

import re
from enum import Enum
from typing import List, Optional, Tuple
import logging

from legacyxref.context import AnalysisContext, Anomaly
from legacyxref.source import SourceUnit
from .cobol_parser import ParagraphIndex, is_comment_line
from .models import DataAccessFact, Paragraph
from .naming import table_role

logger = logging.getLogger(__name__)


class SqlScanState(Enum):
    """Whether the scanner is inside an EXEC SQL block"""
    OUTSIDE_BLOCK = "outside_block"
    BUFFERING = "buffering"


class SqlBlockExtractor:
    """Extract table access facts from embedded SQL"""

    OPERATIONS = ("SELECT", "INSERT", "UPDATE", "DELETE")

    def __init__(self):
        self.exec_sql_pattern = re.compile(r'\bEXEC[\s-]+SQL\b')
        self.end_exec_pattern = re.compile(r'\bEND-EXEC\b')

        self.select_table_pattern = re.compile(r'FROM\s+([A-Z0-9_]+)')
        self.select_columns_pattern = re.compile(r'SELECT\s+(.+?)\s+(?:INTO|FROM)')
        self.insert_table_pattern = re.compile(r'INSERT\s+INTO\s+([A-Z0-9_]+)')
        self.insert_columns_pattern = re.compile(r'\(([^)]+)\)\s*VALUES')
        self.update_table_pattern = re.compile(r'UPDATE\s+([A-Z0-9_]+)')
        self.update_set_pattern = re.compile(r'SET\s+(.+?)(?:\s+WHERE|$)')
        self.delete_table_pattern = re.compile(r'DELETE\s+FROM\s+([A-Z0-9_]+)')
        self.where_pattern = re.compile(r'WHERE\s+(.+?)(?:END-EXEC|$)')

    def extract(self, source: SourceUnit, paragraphs: List[Paragraph],
                context: Optional[AnalysisContext] = None,
                anomalies: Optional[List[Anomaly]] = None) -> List[DataAccessFact]:
        """
        Scan the source for SQL blocks.

        Args:
            source: Program source
            paragraphs: Paragraphs from the structure parser
            context: Run context receiving anomalies
            anomalies: Per-program anomaly list to append to

        Returns:
            One DataAccessFact per block with a recognisable table
        """
        context = context or AnalysisContext()
        index = ParagraphIndex(paragraphs)
        facts = []

        for start_line, text in self._collect_blocks(source, context, anomalies):
            fact = self.parse_statement(text)
            if fact is None:
                continue
            fact.paragraph = index.name_at(start_line)
            fact.line_number = start_line
            facts.append(fact)

        if facts:
            logger.info(f"Found {len(facts)} SQL data access statements in {source.name}")
        return facts

    def _collect_blocks(self, source: SourceUnit, context: AnalysisContext,
                        anomalies: Optional[List[Anomaly]]) -> List[Tuple[int, str]]:
        blocks = []
        state = SqlScanState.OUTSIDE_BLOCK
        buffer: List[str] = []
        start_line = 0

        for i, line in enumerate(source.upper_lines):
            if is_comment_line(line):
                continue

            if state is SqlScanState.OUTSIDE_BLOCK:
                match = self.exec_sql_pattern.search(line)
                if not match:
                    continue
                state = SqlScanState.BUFFERING
                start_line = i + 1
                buffer = []
                line = line[match.end():]

            end = self.end_exec_pattern.search(line)
            if end:
                buffer.append(line[:end.start()].strip())
                blocks.append((start_line, " ".join(part for part in buffer if part)))
                state = SqlScanState.OUTSIDE_BLOCK
                buffer = []
            else:
                buffer.append(line.strip())

        if state is SqlScanState.BUFFERING:
            anomaly = context.record_anomaly(
                "UNCLOSED_SQL_BLOCK", source.name, line_number=start_line,
                detail="EXEC SQL without END-EXEC before end of file",
            )
            if anomalies is not None:
                anomalies.append(anomaly)

        return blocks

    def parse_statement(self, sql: str) -> Optional[DataAccessFact]:
        """Parse the text between EXEC SQL and END-EXEC; None if no table"""
        sql = " ".join(sql.upper().split())
        operation = next((op for op in self.OPERATIONS if op in sql), None)
        if operation is None:
            return None

        table, columns = self._table_and_columns(operation, sql)
        if not table:
            return None

        where = self.where_pattern.search(sql)
        return DataAccessFact(
            entity=table,
            operation=operation,
            paragraph="",
            line_number=0,
            columns=self._clean_columns(columns),
            where_clause=where.group(1).strip() if where else None,
            business_role=table_role(table, operation),
        )

    def _table_and_columns(self, operation: str, sql: str) -> Tuple[Optional[str], List[str]]:
        columns: List[str] = []

        if operation == "SELECT":
            table = self.select_table_pattern.search(sql)
            cols = self.select_columns_pattern.search(sql)
            if cols:
                columns = cols.group(1).split(',')
        elif operation == "INSERT":
            table = self.insert_table_pattern.search(sql)
            cols = self.insert_columns_pattern.search(sql)
            if cols:
                columns = cols.group(1).split(',')
        elif operation == "UPDATE":
            table = self.update_table_pattern.search(sql)
            sets = self.update_set_pattern.search(sql)
            if sets:
                columns = [assignment.split('=')[0] for assignment in sets.group(1).split(',')]
        else:
            table = self.delete_table_pattern.search(sql)

        return (table.group(1) if table else None), columns

    @staticmethod
    def _clean_columns(columns: List[str]) -> List[str]:
        cleaned = []
        for column in columns:
            column = column.strip().lstrip(':').strip()
            if column and column != '*':
                cleaned.append(column)
        return cleaned
