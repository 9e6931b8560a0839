"""
Error hierarchy for the VM translator.

Syntactic problems (the parser rejects the line) and semantic problems (the
line parses but has no translation) are kept in disjoint branches so callers
can tell a malformed program from a valid-but-unsupported one.
"""

from typing import Optional


class TranslationError(Exception):
    """Base class for every error raised while translating a VM program."""

    def __init__(self, message: str, line: Optional[str] = None, line_number: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.line = line
        self.line_number = line_number

    def attach(self, line: str, line_number: int) -> "TranslationError":
        """Record the originating source line (only if not already known)."""
        if self.line is None:
            self.line = line
        if not self.line_number:
            self.line_number = line_number
        return self

    def __str__(self) -> str:
        if self.line_number and self.line is not None:
            return f"line {self.line_number}: {self.message} (in {self.line.rstrip()!r})"
        if self.line_number:
            return f"line {self.line_number}: {self.message}"
        if self.line is not None:
            return f"{self.message} (in {self.line.rstrip()!r})"
        return self.message


# --- Syntactic errors (parser) ---


class ParseError(TranslationError):
    """The source line is not a well-formed VM instruction."""


class InvalidOperation(ParseError):
    def __init__(self, token: str, **kwargs):
        super().__init__(
            f"undefined operation type {token!r}, expected one of push, pop, add, sub",
            **kwargs,
        )
        self.token = token


class InvalidSegment(ParseError):
    def __init__(self, token: str, **kwargs):
        super().__init__(
            f"undefined segment type {token!r}, expected one of "
            "local, argument, this, that, constant, static, pointer, temp",
            **kwargs,
        )
        self.token = token


class InvalidOperand(ParseError):
    def __init__(self, token: str, **kwargs):
        super().__init__(
            f"invalid operand {token!r}, expected unsigned base-10 digits between 0 and 32767",
            **kwargs,
        )
        self.token = token


class MalformedInstruction(ParseError):
    def __init__(self, token_count: int, expected: str = "1 or 3 tokens", **kwargs):
        super().__init__(
            f"invalid instruction, has {token_count} tokens, expected {expected}",
            **kwargs,
        )
        self.token_count = token_count


# --- Semantic errors (generator) ---


class GenerationError(TranslationError):
    """The instruction parsed but has no translation."""


class UnsupportedInstruction(GenerationError):
    def __init__(self, operation: str, segment: Optional[str], reason: str, **kwargs):
        target = f"{operation} {segment}" if segment else operation
        super().__init__(f"`{target}` cannot be translated: {reason}", **kwargs)
        self.operation = operation
        self.segment = segment


class SegmentIndexOutOfRange(GenerationError):
    def __init__(self, segment: str, index: int, limit: int, **kwargs):
        super().__init__(
            f"index {index} is out of range for segment {segment!r} (0..{limit - 1})",
            **kwargs,
        )
        self.segment = segment
        self.index = index


class UnresolvedInstruction(GenerationError):
    """Raised for static accesses when unresolved placeholders are not allowed."""

    def __init__(self, operation: str, segment: str, index: int, **kwargs):
        super().__init__(
            f"`{operation} {segment} {index}` needs per-file static namespacing, which is not implemented",
            **kwargs,
        )
        self.operation = operation
        self.segment = segment
        self.index = index


# --- Configuration errors ---


class LayoutError(TranslationError, ValueError):
    """The memory layout configuration is inconsistent."""


# --- Verification tooling errors ---


class SimulationError(Exception):
    """Raised by the target-machine simulator and the reference VM."""

    def __init__(self, message: str, pc: Optional[int] = None):
        super().__init__(message if pc is None else f"pc={pc}: {message}")
        self.pc = pc


class StackOverflow(SimulationError):
    pass


class StackUnderflow(SimulationError):
    pass


class InvalidAssembly(SimulationError):
    pass


class UnresolvedInstructionExecuted(SimulationError):
    pass
