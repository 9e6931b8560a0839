"""Utilities for target-machine ALU simulation.

Every function takes the current A register, D register and M (RAM[A]) value
and returns the computed word. The operators work on plain ints (callers mask
to 16 bits) and on z3 16-bit bit vectors (which wrap on their own).
"""
from typing import Any, Callable, Dict

WORD_BITS = 16
WORD_MASK = 0xFFFF


def to_word(value: int) -> int:
    """Wrap an int to an unsigned 16-bit word."""
    return value & WORD_MASK


def to_signed(word: int) -> int:
    """Interpret an unsigned 16-bit word as two's complement."""
    word &= WORD_MASK
    return word - 0x10000 if word & 0x8000 else word


ComputeFn = Callable[[Any, Any, Any], Any]

COMP_TABLE: Dict[str, ComputeFn] = {
    "0": lambda a, d, m: 0 * d,
    "1": lambda a, d, m: 0 * d + 1,
    "-1": lambda a, d, m: 0 * d - 1,
    "D": lambda a, d, m: d,
    "A": lambda a, d, m: a,
    "M": lambda a, d, m: m,
    "!D": lambda a, d, m: ~d,
    "!A": lambda a, d, m: ~a,
    "!M": lambda a, d, m: ~m,
    "-D": lambda a, d, m: -d,
    "-A": lambda a, d, m: -a,
    "-M": lambda a, d, m: -m,
    "D+1": lambda a, d, m: d + 1,
    "A+1": lambda a, d, m: a + 1,
    "M+1": lambda a, d, m: m + 1,
    "D-1": lambda a, d, m: d - 1,
    "A-1": lambda a, d, m: a - 1,
    "M-1": lambda a, d, m: m - 1,
    "D+A": lambda a, d, m: d + a,
    "D+M": lambda a, d, m: d + m,
    "D-A": lambda a, d, m: d - a,
    "D-M": lambda a, d, m: d - m,
    "A-D": lambda a, d, m: a - d,
    "M-D": lambda a, d, m: m - d,
    "D&A": lambda a, d, m: d & a,
    "D&M": lambda a, d, m: d & m,
    "D|A": lambda a, d, m: d | a,
    "D|M": lambda a, d, m: d | m,
}

# Commutative spellings accepted by most assemblers
COMP_ALIASES: Dict[str, str] = {
    "A+D": "D+A",
    "M+D": "D+M",
    "A&D": "D&A",
    "M&D": "D&M",
    "A|D": "D|A",
    "M|D": "D|M",
}


def compute(comp: str, a: Any, d: Any, m: Any) -> Any:
    """Evaluate a compute expression; raises KeyError for unknown expressions."""
    return COMP_TABLE[COMP_ALIASES.get(comp, comp)](a, d, m)


def reads_memory(comp: str) -> bool:
    return "M" in comp
