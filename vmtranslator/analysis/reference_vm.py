"""
Reference interpreter for VM programs.

Executes instructions directly against the VM's abstract machine (a bounded
operand stack plus segments) so that generated assembly can be compared to
what the VM-level program means. local/argument/this/that are windows onto a
shared heap addressed through their base pointers; `pointer 0/1` reads and
writes the this/that base pointers themselves.
"""

from typing import Dict, Iterable, List, Optional

import structlog

from ..core.errors import (
    SimulationError,
    StackOverflow,
    StackUnderflow,
    UnresolvedInstructionExecuted,
)
from ..core.instruction import Instruction, Operation, Segment, parse
from ..core.layout import DEFAULT_LAYOUT, MemoryLayout
from ..utils.hack_ops import to_signed, to_word

logger = structlog.get_logger()


class Stack:
    """Bounded operand stack of 16-bit words."""

    def __init__(self, capacity: int):
        self.capacity = capacity
        self.data: List[int] = []

    def push(self, value: int) -> None:
        if len(self.data) >= self.capacity:
            raise StackOverflow(f"stack capacity {self.capacity} exceeded")
        self.data.append(to_word(value))

    def pop(self) -> int:
        if not self.data:
            raise StackUnderflow("SP already at 0")
        return self.data.pop()

    def __len__(self) -> int:
        return len(self.data)


class StackMachine:
    def __init__(self, layout: Optional[MemoryLayout] = None):
        self.layout = layout or DEFAULT_LAYOUT
        self.stack = Stack(self.layout.stack_capacity)
        self.bases: Dict[Segment, int] = {
            Segment.LOCAL: 0,
            Segment.ARGUMENT: 0,
            Segment.THIS: 0,
            Segment.THAT: 0,
        }
        self.temp: List[int] = [0] * self.layout.temp_size
        self.heap: Dict[int, int] = {}

    def read(self, address: int) -> int:
        return self.heap.get(to_word(address), 0)

    def write(self, address: int, value: int) -> None:
        self.heap[to_word(address)] = to_word(value)

    def _pointer_segment(self, index: int) -> Segment:
        if index == 0:
            return Segment.THIS
        if index == 1:
            return Segment.THAT
        raise SimulationError(f"pointer index must be 0 or 1, got {index}")

    def _load(self, segment: Segment, index: int) -> int:
        if segment is Segment.CONSTANT:
            return index
        if segment.is_indirect:
            return self.read(self.bases[segment] + index)
        if segment is Segment.TEMP:
            return self.temp[index]
        if segment is Segment.POINTER:
            return self.bases[self._pointer_segment(index)]
        raise UnresolvedInstructionExecuted(f"cannot read segment {segment.value!r}")

    def _store(self, segment: Segment, index: int, value: int) -> None:
        if segment.is_indirect:
            self.write(self.bases[segment] + index, value)
        elif segment is Segment.TEMP:
            self.temp[index] = value
        elif segment is Segment.POINTER:
            self.bases[self._pointer_segment(index)] = value
        else:
            raise UnresolvedInstructionExecuted(f"cannot write segment {segment.value!r}")

    def execute(self, instruction: Instruction) -> None:
        operation = instruction.operation
        if operation is Operation.PUSH:
            self.stack.push(self._load(instruction.segment, instruction.operand))
        elif operation is Operation.POP:
            # Check the target first so a rejected pop leaves the stack alone
            if instruction.segment in (Segment.CONSTANT, Segment.STATIC):
                raise UnresolvedInstructionExecuted(f"cannot pop into {instruction.segment.value!r}")
            self._store(instruction.segment, instruction.operand, self.stack.pop())
        elif operation in (Operation.ADD, Operation.SUB):
            y = self.stack.pop()
            x = self.stack.pop()
            self.stack.push(x + y if operation is Operation.ADD else x - y)
        else:
            raise SimulationError(f"cannot execute {instruction.raw!r}")

    def run(self, instructions: Iterable[Instruction]) -> None:
        for instruction in instructions:
            if not instruction.is_blank:
                self.execute(instruction)

    def run_source(self, text: str) -> None:
        self.run(parse(line, n) for n, line in enumerate(text.splitlines(), start=1))

    def values(self, signed: bool = True) -> List[int]:
        """Stack contents, bottom first."""
        return [to_signed(v) for v in self.stack.data] if signed else list(self.stack.data)
