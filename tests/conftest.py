"""Shared sample sources for the analyzer tests"""

from pathlib import Path
import sys

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


CUSTUPD = """\
       IDENTIFICATION DIVISION.
       PROGRAM-ID. CUSTUPD.
      * IF EVALUATE GO TO inside a comment must not count
       ENVIRONMENT DIVISION.
       DATA DIVISION.
       WORKING-STORAGE SECTION.
       COPY CUSTREC.
       01 WS-AMOUNT PIC S9(7)V99 COMP-3.
       01 WS-TABLE OCCURS 10 TIMES.

       PROCEDURE DIVISION.
       MAIN-PARA.
           OPEN INPUT CUST-FILE.
           IF WS-AMOUNT > 0
               IF WS-FLAG = 'Y'
                   PERFORM CALC-PARA UNTIL WS-DONE = 1
               END-IF
           END-IF
           EVALUATE WS-CODE
               WHEN 'A'
                   CALL 'SUBPGM1' USING WS-AMOUNT
               WHEN OTHER
                   GO TO EXIT-PARA
           END-EVALUATE
           CLOSE CUST-FILE.
       CALC-PARA.
           MOVE 1 TO WS-DONE.
       EXIT-PARA.
           STOP RUN.
"""


@pytest.fixture
def custupd_source():
    """A small COBOL program touching most migration counters"""
    return CUSTUPD
