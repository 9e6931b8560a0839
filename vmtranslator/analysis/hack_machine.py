"""
Concrete simulator for the emitted target assembly.

Used to check generated code against the reference stack machine. The stack
region is bounds-checked: any write that moves the stack pointer below
`stack_base` or past `stack_limit` raises instead of corrupting memory.
"""

from typing import Iterable, List, Optional, Union

import structlog

from ..core.asm import AddressInstruction, AsmLine, Comment, ComputeInstruction, parse_line
from ..core.errors import (
    InvalidAssembly,
    SimulationError,
    StackOverflow,
    StackUnderflow,
    UnresolvedInstructionExecuted,
)
from ..core.instruction import Segment
from ..core.layout import DEFAULT_LAYOUT, MemoryLayout
from ..utils.hack_ops import compute, reads_memory, to_signed, to_word

logger = structlog.get_logger()

RAM_SIZE = 0x8000


class HackMachine:
    def __init__(self, layout: Optional[MemoryLayout] = None, ram_size: int = RAM_SIZE):
        self.layout = layout or DEFAULT_LAYOUT
        self.ram_size = ram_size
        self.symbols = self.layout.symbol_table()
        self._sp_address = self.layout.address_of(self.layout.stack_pointer)
        self.reset()

    def reset(self) -> None:
        self.ram: List[int] = [0] * self.ram_size
        self.a = 0
        self.d = 0
        self.steps = 0
        self.ram[self._sp_address] = self.layout.stack_base

    # --- Memory access ---

    def peek(self, address: int, signed: bool = False) -> int:
        self._check_address(address)
        value = self.ram[address]
        return to_signed(value) if signed else value

    def poke(self, address: int, value: int) -> None:
        """Write memory directly, bypassing the stack bounds check."""
        self._check_address(address)
        self.ram[address] = to_word(value)

    def _check_address(self, address: int, pc: Optional[int] = None) -> None:
        if not 0 <= address < self.ram_size:
            raise SimulationError(f"address {address} is outside RAM[0..{self.ram_size - 1}]", pc)

    @property
    def sp(self) -> int:
        return self.ram[self._sp_address]

    def set_base(self, segment: Segment, address: int) -> None:
        """Point an indirect segment (local/argument/this/that) at `address`."""
        self.poke(self.layout.address_of(self.layout.base_cell(segment)), address)

    def base(self, segment: Segment) -> int:
        return self.ram[self.layout.address_of(self.layout.base_cell(segment))]

    def push_values(self, *values: int) -> None:
        """Place values on the stack as if they had been pushed in order."""
        for value in values:
            sp = self.sp
            if sp >= self.layout.stack_limit:
                raise StackOverflow(f"stack is full at {sp}")
            self.ram[sp] = to_word(value)
            self.ram[self._sp_address] = sp + 1

    def stack(self, signed: bool = True) -> List[int]:
        """Current stack contents, bottom first."""
        values = self.ram[self.layout.stack_base:self.sp]
        return [to_signed(v) for v in values] if signed else list(values)

    def temp(self, index: int, signed: bool = True) -> int:
        return self.peek(self.layout.temp_base + index, signed)

    # --- Execution ---

    def _resolve(self, value: Union[int, str], pc: int) -> int:
        if isinstance(value, int):
            return value
        try:
            return self.symbols[value]
        except KeyError:
            raise InvalidAssembly(f"unknown symbol {value!r}", pc) from None

    def _write(self, address: int, value: int, pc: int) -> None:
        self._check_address(address, pc)
        if address == self._sp_address:
            if value < self.layout.stack_base:
                raise StackUnderflow(f"stack pointer would drop to {value}", pc)
            if value > self.layout.stack_limit:
                raise StackOverflow(f"stack pointer would rise to {value}", pc)
        self.ram[address] = value

    def step(self, line: AsmLine, pc: int = 0) -> None:
        if isinstance(line, Comment):
            if line.unresolved:
                raise UnresolvedInstructionExecuted(f"reached placeholder {line}", pc)
            return
        self.steps += 1
        if isinstance(line, AddressInstruction):
            self.a = self._resolve(line.value, pc)
            return
        if isinstance(line, ComputeInstruction):
            address = self.a
            m = 0
            if reads_memory(line.comp):
                self._check_address(address, pc)
                m = self.ram[address]
            value = to_word(compute(line.comp, self.a, self.d, m))
            # M is written through the address held before this instruction
            if "M" in line.dest:
                self._write(address, value, pc)
            if "A" in line.dest:
                self.a = value
            if "D" in line.dest:
                self.d = value
            return
        raise InvalidAssembly(f"cannot execute {line!r}", pc)

    def execute(self, lines: Iterable[str]) -> int:
        """
        Run straight-line assembly text.

        Returns:
            Number of executed (non-comment) instructions.
        """
        executed = 0
        for pc, text in enumerate(lines):
            line = parse_line(text, pc)
            if line is None:
                continue
            before = self.steps
            self.step(line, pc)
            executed += self.steps - before
        logger.debug("Executed assembly", instructions=executed, sp=self.sp)
        return executed

    def run_source(self, text: str) -> int:
        return self.execute(text.splitlines())
