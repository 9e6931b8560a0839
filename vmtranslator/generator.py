"""
Code generator: VM instructions to target assembly.

Each handled (operation, segment) pair maps to a pure function of
(operand, layout) returning the ordered target lines. The stack pointer cell
always holds the address of the next free slot, so a push writes RAM[SP] and
then increments SP, and a pop decrements SP and then reads RAM[SP].
"""

from functools import partial
from typing import Callable, Dict, List, Optional, Tuple

import structlog

from .core.asm import UNRESOLVED_MARKER
from .core.errors import (
    GenerationError,
    SegmentIndexOutOfRange,
    UnresolvedInstruction,
    UnsupportedInstruction,
)
from .core.instruction import Instruction, Operation, Segment
from .core.layout import DEFAULT_LAYOUT, MemoryLayout

logger = structlog.get_logger()

Handler = Callable[[int, MemoryLayout], List[str]]
DispatchKey = Tuple[Operation, Optional[Segment]]

POINTER_SIZE = 2


# --- Shared fragments ---


def _push_d(layout: MemoryLayout) -> List[str]:
    # *SP=D, SP++
    return [
        f"@{layout.stack_pointer}",
        "A=M",
        "M=D",
        "D=A+1",
        f"@{layout.stack_pointer}",
        "M=D",
    ]


def _pop_d(layout: MemoryLayout) -> List[str]:
    # SP--, D=*SP
    return [
        f"@{layout.stack_pointer}",
        "A=M",
        "AD=A-1",
        f"@{layout.stack_pointer}",
        "M=D",
        "A=D",
        "D=M",
    ]


# --- push ---


def _push_constant(value: int, layout: MemoryLayout) -> List[str]:
    return [f"@{value}", "D=A"] + _push_d(layout)


def _push_indirect(segment: Segment, index: int, layout: MemoryLayout) -> List[str]:
    # D=*(base+i)
    return [
        f"@{index}",
        "D=A",
        f"@{layout.base_cell(segment)}",
        "A=D+M",
        "D=M",
    ] + _push_d(layout)


def _push_temp(index: int, layout: MemoryLayout) -> List[str]:
    _check_index(Segment.TEMP, index, layout.temp_size)
    return [f"@{layout.temp_base + index}", "D=M"] + _push_d(layout)


def _push_pointer(index: int, layout: MemoryLayout) -> List[str]:
    _check_index(Segment.POINTER, index, POINTER_SIZE)
    return [f"@{layout.pointer_cell(index)}", "D=M"] + _push_d(layout)


# --- pop ---


def _pop_indirect(segment: Segment, index: int, layout: MemoryLayout) -> List[str]:
    # scratch=base+i, SP--, *scratch=*SP
    return (
        [
            f"@{index}",
            "D=A",
            f"@{layout.base_cell(segment)}",
            "D=D+M",
            f"@{layout.scratch}",
            "M=D",
        ]
        + _pop_d(layout)
        + [f"@{layout.scratch}", "A=M", "M=D"]
    )


def _pop_temp(index: int, layout: MemoryLayout) -> List[str]:
    _check_index(Segment.TEMP, index, layout.temp_size)
    return _pop_d(layout) + [f"@{layout.temp_base + index}", "M=D"]


def _pop_pointer(index: int, layout: MemoryLayout) -> List[str]:
    _check_index(Segment.POINTER, index, POINTER_SIZE)
    return _pop_d(layout) + [f"@{layout.pointer_cell(index)}", "M=D"]


# --- arithmetic ---


def _binary(comp: str, _operand: int, layout: MemoryLayout) -> List[str]:
    # scratch=y (top), D=x (below), *SP=x op y, SP++
    return (
        _pop_d(layout)
        + [f"@{layout.scratch}", "M=D"]
        + _pop_d(layout)
        + [f"@{layout.scratch}", comp]
        + _push_d(layout)
    )


def _check_index(segment: Segment, index: int, size: int) -> None:
    if index >= size:
        raise SegmentIndexOutOfRange(segment.value, index, size)


HANDLERS: Dict[DispatchKey, Handler] = {
    (Operation.PUSH, Segment.CONSTANT): _push_constant,
    (Operation.PUSH, Segment.TEMP): _push_temp,
    (Operation.PUSH, Segment.POINTER): _push_pointer,
    (Operation.POP, Segment.TEMP): _pop_temp,
    (Operation.POP, Segment.POINTER): _pop_pointer,
    (Operation.ADD, None): partial(_binary, "D=D+M"),
    (Operation.SUB, None): partial(_binary, "D=D-M"),
}
for _segment in (Segment.LOCAL, Segment.ARGUMENT, Segment.THIS, Segment.THAT):
    HANDLERS[(Operation.PUSH, _segment)] = partial(_push_indirect, _segment)
    HANDLERS[(Operation.POP, _segment)] = partial(_pop_indirect, _segment)

# Parse fine, never translate
REJECTED: Dict[DispatchKey, str] = {
    (Operation.POP, Segment.CONSTANT): "constants are not addressable",
}

# Need per-file static namespacing; emitted as an explicit placeholder
UNRESOLVED: Tuple[DispatchKey, ...] = (
    (Operation.PUSH, Segment.STATIC),
    (Operation.POP, Segment.STATIC),
)


def dispatch_keys() -> List[DispatchKey]:
    """Every (operation, segment) pair the parser can produce."""
    keys: List[DispatchKey] = []
    for operation in Operation:
        if operation.takes_operand:
            keys.extend((operation, segment) for segment in Segment)
        else:
            keys.append((operation, None))
    return keys


def _check_exhaustive() -> None:
    missing = [
        key
        for key in dispatch_keys()
        if key not in HANDLERS and key not in REJECTED and key not in UNRESOLVED
    ]
    if missing:
        raise RuntimeError(f"no translation rule for {missing}")


_check_exhaustive()


class CodeGenerator:
    """
    Emits target assembly for parsed VM instructions.

    Args:
        layout: Memory layout conventions to honour.
        allow_unresolved: Emit a placeholder for static accesses instead of
            raising UnresolvedInstruction.
    """

    def __init__(self, layout: Optional[MemoryLayout] = None, allow_unresolved: bool = True):
        self.layout = layout or DEFAULT_LAYOUT
        self.allow_unresolved = allow_unresolved

    def lines_for(
        self, operation: Operation, segment: Optional[Segment] = None, operand: Optional[int] = None
    ) -> List[str]:
        """Target lines for one instruction, without touching any Instruction object."""
        key = (operation, segment)
        if key in REJECTED:
            raise UnsupportedInstruction(
                operation.value, segment.value if segment else None, REJECTED[key]
            )
        if key in UNRESOLVED:
            if not self.allow_unresolved:
                raise UnresolvedInstruction(operation.value, segment.value, operand or 0)
            return [f"{UNRESOLVED_MARKER} {operation.value} {segment.value} {operand}"]
        handler = HANDLERS.get(key)
        if handler is None:
            raise UnsupportedInstruction(
                operation.value, segment.value if segment else None, "no translation rule"
            )
        return handler(operand or 0, self.layout)

    def generate(self, instruction: Instruction) -> List[str]:
        """
        Generate and record the target lines for a parsed instruction.

        Raises:
            GenerationError: For instructions that parse but cannot be translated.
            ValueError: For blank instructions or instructions already generated.
        """
        if instruction.is_blank or instruction.operation is None:
            raise ValueError("blank instructions have nothing to generate")
        if instruction.generated:
            raise ValueError(f"instruction {instruction.text!r} was already generated")

        try:
            lines = self.lines_for(instruction.operation, instruction.segment, instruction.operand)
        except GenerationError as e:
            raise e.attach(instruction.raw, instruction.line_number)

        if instruction.segment is Segment.STATIC:
            instruction.unresolved = True
            logger.warning(
                "Static segment left unresolved",
                line_number=instruction.line_number,
                instruction=instruction.text,
            )
        instruction.emit(*lines)
        logger.debug(
            "Generated instruction",
            line_number=instruction.line_number,
            instruction=instruction.text,
            lines=len(lines),
        )
        return list(instruction.emitted_lines)


def generate(
    instruction: Instruction, layout: Optional[MemoryLayout] = None, allow_unresolved: bool = True
) -> List[str]:
    """Convenience wrapper around CodeGenerator.generate."""
    return CodeGenerator(layout, allow_unresolved).generate(instruction)


def bootstrap(layout: Optional[MemoryLayout] = None) -> List[str]:
    """Lines that point SP at the base of the stack area."""
    layout = layout or DEFAULT_LAYOUT
    return [f"@{layout.stack_base}", "D=A", f"@{layout.stack_pointer}", "M=D"]
