"""Shared COBOL and JCL fixtures"""

import pytest

from legacyxref.context import AnalysisContext
from legacyxref.source import SourceUnit


CUSTUPD_SOURCE = """\
       IDENTIFICATION DIVISION.
       PROGRAM-ID. CUSTUPD.
       ENVIRONMENT DIVISION.
       INPUT-OUTPUT SECTION.
       FILE-CONTROL.
           SELECT CUST-FILE ASSIGN TO CUSTIN.
           SELECT RPT-FILE ASSIGN TO RPTOUT.
       DATA DIVISION.
       FILE SECTION.
       FD  CUST-FILE.
       01  CUST-REC.
           05  CUST-ID            PIC X(10).
           05  CUST-BALANCE       PIC S9(7)V99 COMP-3.
       WORKING-STORAGE SECTION.
       01  WS-EOF                 PIC X VALUE 'N'.
           88  END-OF-FILE        VALUE 'Y'.
       01  WS-TOTAL-AMOUNT        PIC S9(9)V99 COMP-3 VALUE ZERO.
           COPY CUSTCOPY.
       PROCEDURE DIVISION.
       MAIN-PARA.
           OPEN INPUT CUST-FILE OUTPUT RPT-FILE.
           PERFORM READ-PARA UNTIL WS-EOF = 'Y'.
           CLOSE CUST-FILE RPT-FILE.
           STOP RUN.
       READ-PARA.
           READ CUST-FILE
               AT END MOVE 'Y' TO WS-EOF
           END-READ.
           IF WS-EOF NOT = 'Y'
               PERFORM UPDATE-PARA
           END-IF.
       UPDATE-PARA.
           ADD CUST-BALANCE TO WS-TOTAL-AMOUNT.
           EXEC SQL
               UPDATE CUSTOMER
               SET BALANCE = :CUST-BALANCE
               WHERE CUST_ID = :CUST-ID
           END-EXEC.
           CALL 'AUDITLOG' USING CUST-ID.
"""

CUSTINQ_SOURCE = """\
       IDENTIFICATION DIVISION.
       PROGRAM-ID. CUSTINQ.
       DATA DIVISION.
       WORKING-STORAGE SECTION.
       01  WS-CUST-ID             PIC X(10).
       PROCEDURE DIVISION.
       MAIN-PARA.
           EXEC CICS RECEIVE MAP('CUSTMAP') END-EXEC.
           EXEC SQL
               SELECT NAME, BALANCE INTO :WS-NAME, :WS-BAL
               FROM CUSTOMER WHERE CUST_ID = :WS-CUST-ID
           END-EXEC.
           CALL 'CUSTUPD' USING WS-CUST-ID.
           EXEC CICS RETURN END-EXEC.
"""

CUSTJOB_SOURCE = """\
//CUSTJOB  JOB (ACCT),'CUSTOMER',CLASS=A,MSGCLASS=X
//STEP1    EXEC PGM=CUSTUPD,PARM='DAILY,RUN'
//CUSTIN   DD DSN=PROD.CUST.MASTER,DISP=SHR
//RPTOUT   DD DSN=PROD.CUST.REPORT,
//            DISP=(NEW,CATLG,DELETE),
//            RECFM=FB,LRECL=133
//STEP2    EXEC PGM=CUSTRPT,COND=(4,LT)
//RPTIN    DD DSN=PROD.CUST.REPORT,DISP=SHR
//SYSOUT   DD SYSOUT=*
//SYSIN    DD *
  CONTROL CARD 1
/*
"""


@pytest.fixture
def context():
    return AnalysisContext()


@pytest.fixture
def custupd_source():
    return SourceUnit.from_text(CUSTUPD_SOURCE, "CUSTUPD.cbl")


@pytest.fixture
def custinq_source():
    return SourceUnit.from_text(CUSTINQ_SOURCE, "CUSTINQ.cbl")


@pytest.fixture
def custjob_source():
    return SourceUnit.from_text(CUSTJOB_SOURCE, "CUSTJOB.jcl")


@pytest.fixture
def sample_project(tmp_path):
    """A small project tree: two programs, two copybooks, one job"""
    (tmp_path / "cbl").mkdir()
    (tmp_path / "cpy").mkdir()
    (tmp_path / "jcl").mkdir()
    (tmp_path / "cbl" / "CUSTUPD.cbl").write_text(CUSTUPD_SOURCE)
    (tmp_path / "cbl" / "CUSTINQ.cbl").write_text(CUSTINQ_SOURCE)
    (tmp_path / "cpy" / "CUSTCOPY.cpy").write_text("       01  CUST-COPY-REC PIC X(80).\n")
    (tmp_path / "cpy" / "OLDCOPY.cpy").write_text("       01  OLD-REC PIC X(80).\n")
    (tmp_path / "jcl" / "CUSTJOB.jcl").write_text(CUSTJOB_SOURCE)
    return tmp_path
