"""Source loading

A SourceUnit is the immutable, line-addressable view of one source file
that every extractor scans. It keeps the raw lines for citation and a
case-normalized shadow for pattern matching.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union
import logging

logger = logging.getLogger(__name__)

# Fixed-format sequence area: six digits in columns 1-6
SEQUENCE_AREA_PATTERN = re.compile(r'^\d{6}')


def normalize_line(line: str) -> str:
    """Upper-case a line and blank a numeric sequence area, keeping columns"""
    upper = line.upper()
    if SEQUENCE_AREA_PATTERN.match(upper):
        upper = ' ' * 6 + upper[6:]
    return upper


@dataclass(frozen=True)
class SourceUnit:
    """Raw lines of one file plus their normalized shadow"""
    path: Optional[Path] = None
    lines: Tuple[str, ...] = ()
    upper_lines: Tuple[str, ...] = ()

    @classmethod
    def from_text(cls, text: str, path: Optional[Union[str, Path]] = None) -> "SourceUnit":
        lines = tuple(text.splitlines())
        return cls(
            path=Path(path) if path is not None else None,
            lines=lines,
            upper_lines=tuple(normalize_line(line) for line in lines),
        )

    @property
    def name(self) -> str:
        return self.path.name if self.path else "<memory>"

    @property
    def stem(self) -> str:
        return self.path.stem.upper() if self.path else "UNKNOWN"

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def __len__(self) -> int:
        return len(self.lines)


def load_source(path: Union[str, Path]) -> SourceUnit:
    """
    Read a file into a SourceUnit.

    Unreadable files are logged and come back as an empty unit so that one
    bad file never stops a run.
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8', errors='ignore') as f:
            text = f.read()
    except OSError as e:
        logger.warning(f"Failed to read {path}: {e}")
        return SourceUnit(path=path)

    if not text:
        logger.debug(f"{path} is empty")
    return SourceUnit.from_text(text, path)
