"""JCL statement continuation folding

A JCL statement continues onto the next physical line when its operand
field ends with a comma. Folding joins such lines into one logical
statement before any statement is recognised.
"""

from enum import Enum
from typing import Iterable, List, Tuple
import re

CONTINUATION_PREFIX = re.compile(r'^//\s*')


class ContinuationState(Enum):
    """Whether a statement is being accumulated"""
    READY = "ready"
    CONTINUING = "continuing"


def fold_with_line_numbers(lines: Iterable[str], max_column: int = 72) -> List[Tuple[int, str]]:
    """
    Fold continued statements, keeping the 1-based line where each starts.

    Columns past max_column (sequence numbers) are dropped first. A pending
    statement is flushed at end of input.
    """
    folded: List[Tuple[int, str]] = []
    state = ContinuationState.READY
    buffer = ""
    start = 0

    for number, raw in enumerate(lines, start=1):
        line = raw[:max_column].rstrip()

        if state is ContinuationState.CONTINUING:
            buffer += " " + CONTINUATION_PREFIX.sub("", line).strip()
            if not line.endswith(","):
                folded.append((start, buffer))
                state = ContinuationState.READY
        elif line.endswith(",") and line.startswith("//") and not line.startswith("//*"):
            # Only statements continue; in-stream data lines are kept as they are
            buffer, start = line, number
            state = ContinuationState.CONTINUING
        else:
            folded.append((number, line))

    if state is ContinuationState.CONTINUING:
        folded.append((start, buffer))

    return folded


def fold_continuations(lines: Iterable[str], max_column: int = 72) -> List[str]:
    """Fold continued statements into single logical lines"""
    return [text for _, text in fold_with_line_numbers(lines, max_column)]
