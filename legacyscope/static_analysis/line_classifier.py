"""Line Classifier for COBOL and copybook sources

Turns raw file text into an ordered sequence of logical lines, each tagged
as comment, blank or code. Every analyzer works on this sequence instead of
raw text.
"""

from pathlib import Path
from typing import List, Union
from dataclasses import dataclass, field
import logging

logger = logging.getLogger(__name__)

COMMENT_INDICATOR = '*'
INDICATOR_COLUMN = 6  # column 7, 0-based
BYTE_ORDER_MARK = '\ufeff'


class SourceReadError(IOError):
    """Raised when a source file cannot be read or decoded"""

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Failed to read {self.path}: {reason}")


@dataclass(frozen=True)
class SourceLine:
    """A single physical line of source"""
    number: int  # 1-based
    text: str
    is_comment: bool = False
    is_blank: bool = False

    @property
    def is_code(self) -> bool:
        return not (self.is_comment or self.is_blank)

    @property
    def stripped(self) -> str:
        return self.text.strip()

    @property
    def upper(self) -> str:
        return self.text.upper()


@dataclass(frozen=True)
class SourceFile:
    """Source text decomposed into classified lines"""
    path: str
    content: str
    lines: List[SourceLine] = field(default_factory=list)

    def code_lines(self) -> List[SourceLine]:
        return [line for line in self.lines if line.is_code]


def _is_comment(raw: str, fixed_format: bool) -> bool:
    if raw.strip().startswith(COMMENT_INDICATOR):
        return True
    # Fixed-column sources carry the indicator in column 7
    if fixed_format and len(raw) > INDICATOR_COLUMN and raw[INDICATOR_COLUMN] == COMMENT_INDICATOR:
        return True
    return False


def classify_lines(text: str, fixed_format: bool = False) -> List[SourceLine]:
    """
    Split text into classified lines.

    Args:
        text: Raw source text
        fixed_format: Also treat a '*' in column 7 as a comment marker

    Returns:
        Ordered list of SourceLine, one per physical line
    """
    if not text:
        return []
    text = text.lstrip(BYTE_ORDER_MARK)

    lines = []
    for number, raw in enumerate(text.splitlines(), start=1):
        raw = raw.rstrip('\r\n')
        if not raw.strip():
            lines.append(SourceLine(number=number, text=raw, is_blank=True))
        elif _is_comment(raw, fixed_format):
            lines.append(SourceLine(number=number, text=raw, is_comment=True))
        else:
            lines.append(SourceLine(number=number, text=raw))

    return lines


def read_source(path: Union[str, Path], fixed_format: bool = False) -> SourceFile:
    """
    Read a source file fully and classify its lines.

    Raises:
        SourceReadError: file missing, not a regular file, unreadable or not UTF-8
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8-sig') as f:
            content = f.read()
    except UnicodeDecodeError as e:
        raise SourceReadError(path, f"not valid UTF-8 ({e.reason})") from e
    except OSError as e:
        raise SourceReadError(path, e.strerror or str(e)) from e

    logger.debug(f"Read {len(content)} characters from {path}")
    return SourceFile(
        path=str(path),
        content=content,
        lines=classify_lines(content, fixed_format=fixed_format),
    )
