"""
Target assembly line model.

Three line forms are produced by the translator and understood by the
simulators:

    @<n> / @<symbol>     address instruction
    <dest>=<comp>        compute instruction
    // <text>            comment
"""

import re
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Union

from ..utils.hack_ops import COMP_ALIASES, COMP_TABLE
from .errors import InvalidAssembly

# Marker emitted in place of code that cannot be generated yet
UNRESOLVED_MARKER = "// UNDEF"

DESTS: FrozenSet[str] = frozenset({"M", "D", "A", "MD", "AD", "AM", "AMD"})

# Subset of destinations and expressions the code generator restricts itself to
GENERATOR_DESTS: FrozenSet[str] = frozenset({"M", "D", "A", "MD", "AD"})
GENERATOR_COMPS: FrozenSet[str] = frozenset(
    {"A", "M", "D", "A+1", "A-1", "D+A", "D+M", "D-A", "D-M", "A-D"}
)

MAX_ADDRESS_CONSTANT = 0x7FFF

_SYMBOL_RE = re.compile(r"[A-Za-z_.$:][A-Za-z0-9_.$:]*")


@dataclass(frozen=True)
class AddressInstruction:
    value: Union[int, str]

    def __str__(self) -> str:
        return f"@{self.value}"


@dataclass(frozen=True)
class ComputeInstruction:
    dest: str
    comp: str

    def __str__(self) -> str:
        return f"{self.dest}={self.comp}"


@dataclass(frozen=True)
class Comment:
    text: str

    @property
    def unresolved(self) -> bool:
        return f"// {self.text}".startswith(UNRESOLVED_MARKER)

    def __str__(self) -> str:
        return f"// {self.text}"


AsmLine = Union[AddressInstruction, ComputeInstruction, Comment]


def parse_line(line: str, pc: Optional[int] = None) -> Optional[AsmLine]:
    """
    Parse one line of target assembly.

    Returns None for empty lines and raises InvalidAssembly for anything that
    is not one of the three supported forms.
    """
    text = line.strip()
    if not text:
        return None
    if text.startswith("//"):
        return Comment(text[2:].strip())
    if text.startswith("@"):
        operand = text[1:]
        if operand.isdigit():
            value = int(operand)
            if value > MAX_ADDRESS_CONSTANT:
                raise InvalidAssembly(f"address constant {value} does not fit 15 bits", pc)
            return AddressInstruction(value)
        if _SYMBOL_RE.fullmatch(operand):
            return AddressInstruction(operand)
        raise InvalidAssembly(f"malformed address instruction {text!r}", pc)
    dest, sep, comp = text.partition("=")
    if not sep:
        raise InvalidAssembly(f"unsupported instruction {text!r}", pc)
    if dest not in DESTS:
        raise InvalidAssembly(f"invalid destination {dest!r} in {text!r}", pc)
    if comp not in COMP_TABLE and comp not in COMP_ALIASES:
        raise InvalidAssembly(f"invalid expression {comp!r} in {text!r}", pc)
    return ComputeInstruction(dest, comp)


def parse_program(lines: Iterable[str]) -> List[AsmLine]:
    program = []
    for pc, line in enumerate(lines):
        parsed = parse_line(line, pc)
        if parsed is not None:
            program.append(parsed)
    return program


def uses_generator_subset(line: str) -> bool:
    """True if a generated line stays inside the generator's local convention."""
    parsed = parse_line(line)
    if isinstance(parsed, ComputeInstruction):
        return parsed.dest in GENERATOR_DESTS and parsed.comp in GENERATOR_COMPS
    return parsed is not None
