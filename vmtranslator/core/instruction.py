"""
VM instruction model and line parser.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import structlog

from .errors import InvalidOperand, InvalidOperation, InvalidSegment, MalformedInstruction

logger = structlog.get_logger()

COMMENT_MARKER = "//"

# Largest value an address instruction can load; also keeps operands inside
# the signed 16-bit range.
MAX_OPERAND = 0x7FFF

_OPERAND_RE = re.compile(r"[0-9]+")


class Operation(str, Enum):
    """VM operations understood by the translator."""

    PUSH = "push"
    POP = "pop"
    ADD = "add"
    SUB = "sub"

    @property
    def takes_operand(self) -> bool:
        return self in (Operation.PUSH, Operation.POP)

    @property
    def is_arithmetic(self) -> bool:
        return self in (Operation.ADD, Operation.SUB)


class Segment(str, Enum):
    """Named VM memory segments."""

    LOCAL = "local"
    ARGUMENT = "argument"
    THIS = "this"
    THAT = "that"
    CONSTANT = "constant"
    STATIC = "static"
    POINTER = "pointer"
    TEMP = "temp"

    @property
    def is_indirect(self) -> bool:
        """True for segments addressed through a base-pointer cell."""
        return self in (Segment.LOCAL, Segment.ARGUMENT, Segment.THIS, Segment.THAT)


@dataclass
class Instruction:
    """
    One source line of a VM program.

    Built by `parse`; `emitted_lines` is filled once by the code generator and
    only ever appended to.
    """

    raw: str
    line_number: int = 0
    stripped: str = ""
    is_blank: bool = False
    operation: Optional[Operation] = None
    segment: Optional[Segment] = None
    operand: Optional[int] = None
    emitted_lines: List[str] = field(default_factory=list)
    unresolved: bool = False

    def emit(self, *lines: str) -> None:
        """Append generated target lines."""
        self.emitted_lines.extend(lines)

    @property
    def generated(self) -> bool:
        return bool(self.emitted_lines)

    @property
    def text(self) -> str:
        """Canonical single-spaced form, e.g. ``push local 2``."""
        if self.is_blank or self.operation is None:
            return ""
        if self.segment is None:
            return self.operation.value
        return f"{self.operation.value} {self.segment.value} {self.operand}"

    def __str__(self) -> str:
        return self.text


def _parse_operand(token: str, raw: str, line_number: int) -> int:
    if not _OPERAND_RE.fullmatch(token):
        raise InvalidOperand(token, line=raw, line_number=line_number)
    value = int(token, 10)
    if value < 0 or value > MAX_OPERAND:
        raise InvalidOperand(token, line=raw, line_number=line_number)
    return value


def parse(raw: str, line_number: int = 0) -> Instruction:
    """
    Parse one raw VM source line.

    Args:
        raw: The line without its line terminator.
        line_number: 1-based position in the source, used for diagnostics.

    Returns:
        A blank instruction for empty/comment-only lines, otherwise an
        instruction with `operation` set (and `segment`/`operand` for push/pop).

    Raises:
        ParseError: One of InvalidOperation, InvalidSegment, InvalidOperand or
            MalformedInstruction.
    """
    instruction = Instruction(raw=raw, line_number=line_number)

    before, _, _ = raw.partition(COMMENT_MARKER)
    if not before:
        instruction.is_blank = True
        return instruction
    instruction.stripped = before

    # str.split() drops the empty tokens left by repeated whitespace
    tokens = before.split()
    if not tokens:
        raise MalformedInstruction(0, line=raw, line_number=line_number)

    try:
        operation = Operation(tokens[0])
    except ValueError:
        raise InvalidOperation(tokens[0], line=raw, line_number=line_number) from None
    instruction.operation = operation

    num_tokens = len(tokens)
    if num_tokens == 1:
        if operation.takes_operand:
            raise MalformedInstruction(
                1, expected=f"3 tokens for {operation.value}", line=raw, line_number=line_number
            )
    elif num_tokens == 3:
        if not operation.takes_operand:
            raise MalformedInstruction(
                3, expected=f"1 token for {operation.value}", line=raw, line_number=line_number
            )
        try:
            instruction.segment = Segment(tokens[1])
        except ValueError:
            raise InvalidSegment(tokens[1], line=raw, line_number=line_number) from None
        instruction.operand = _parse_operand(tokens[2], raw, line_number)
    else:
        raise MalformedInstruction(num_tokens, line=raw, line_number=line_number)

    logger.debug("Parsed instruction", line_number=line_number, instruction=instruction.text)
    return instruction
