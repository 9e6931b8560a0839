"""
Symbolic equivalence checking of generated code with Z3.

RAM is modelled as a Z3 array from 16-bit addresses to 16-bit words, with
every cell initially unconstrained. For one VM instruction we build two final
memories:

- the memory left behind by symbolically executing the emitted assembly, and
- the memory the VM semantics prescribe (`reference_effect`).

The instruction is proved correct when no address other than the scratch cell
can hold different values in the two, given that the stack pointer starts
inside the stack area with enough values for the instruction to consume.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import structlog
import z3

from ..core.asm import AddressInstruction, AsmLine, Comment, ComputeInstruction, parse_line
from ..core.errors import InvalidAssembly, SimulationError, UnresolvedInstructionExecuted
from ..core.instruction import Instruction, Operation, Segment
from ..core.layout import DEFAULT_LAYOUT, MemoryLayout
from ..generator import CodeGenerator
from ..utils.hack_ops import WORD_BITS, compute
from .stack_analyzer import get_stack_effect

logger = structlog.get_logger()

BV16 = z3.BitVecSort(WORD_BITS)
RAM = z3.ArraySort(BV16, BV16)


def word(value: int) -> z3.BitVecRef:
    return z3.BitVecVal(value, WORD_BITS)


class SymbolicHackMachine:
    """Executes straight-line target assembly over a symbolic RAM."""

    def __init__(self, memory: z3.ArrayRef, layout: Optional[MemoryLayout] = None):
        self.layout = layout or DEFAULT_LAYOUT
        self.symbols = self.layout.symbol_table()
        self.memory = memory
        self.a: z3.BitVecRef = word(0)
        self.d: z3.BitVecRef = word(0)

    def step(self, line: AsmLine, pc: int = 0) -> None:
        if isinstance(line, Comment):
            if line.unresolved:
                raise UnresolvedInstructionExecuted(f"reached placeholder {line}", pc)
            return
        if isinstance(line, AddressInstruction):
            value = line.value
            if not isinstance(value, int):
                if value not in self.symbols:
                    raise InvalidAssembly(f"unknown symbol {value!r}", pc)
                value = self.symbols[value]
            self.a = word(value)
            return
        if isinstance(line, ComputeInstruction):
            address = self.a
            m = z3.Select(self.memory, address)
            value = z3.simplify(compute(line.comp, self.a, self.d, m))
            if "M" in line.dest:
                self.memory = z3.Store(self.memory, address, value)
            if "A" in line.dest:
                self.a = value
            if "D" in line.dest:
                self.d = value
            return
        raise InvalidAssembly(f"cannot execute {line!r}", pc)

    def execute(self, lines: Iterable[str]) -> None:
        for pc, text in enumerate(lines):
            line = parse_line(text, pc)
            if line is not None:
                self.step(line, pc)


def _cell(layout: MemoryLayout, symbol: str) -> z3.BitVecRef:
    return word(layout.address_of(symbol))


def _segment_address(
    segment: Segment, index: int, memory: z3.ArrayRef, layout: MemoryLayout
) -> z3.BitVecRef:
    if segment.is_indirect:
        return z3.Select(memory, _cell(layout, layout.base_cell(segment))) + index
    if segment is Segment.TEMP:
        return word(layout.temp_base + index)
    if segment is Segment.POINTER:
        return _cell(layout, layout.pointer_cell(index))
    raise SimulationError(f"segment {segment.value!r} has no address")


def reference_effect(
    instruction: Instruction, memory: z3.ArrayRef, layout: Optional[MemoryLayout] = None
) -> z3.ArrayRef:
    """RAM after `instruction` according to the VM semantics."""
    layout = layout or DEFAULT_LAYOUT
    sp_cell = _cell(layout, layout.stack_pointer)
    sp = z3.Select(memory, sp_cell)
    operation = instruction.operation

    if operation is Operation.PUSH:
        if instruction.segment is Segment.CONSTANT:
            value = word(instruction.operand)
        else:
            address = _segment_address(instruction.segment, instruction.operand, memory, layout)
            value = z3.Select(memory, address)
        memory = z3.Store(memory, sp, value)
        return z3.Store(memory, sp_cell, sp + 1)

    if operation is Operation.POP:
        address = _segment_address(instruction.segment, instruction.operand, memory, layout)
        value = z3.Select(memory, sp - 1)
        memory = z3.Store(memory, sp_cell, sp - 1)
        return z3.Store(memory, address, value)

    if operation in (Operation.ADD, Operation.SUB):
        y = z3.Select(memory, sp - 1)
        x = z3.Select(memory, sp - 2)
        result = x + y if operation is Operation.ADD else x - y
        memory = z3.Store(memory, sp - 2, result)
        return z3.Store(memory, sp_cell, sp - 1)

    raise SimulationError(f"no reference semantics for {instruction.text!r}")


def preconditions(
    instruction: Instruction, memory: z3.ArrayRef, layout: Optional[MemoryLayout] = None
) -> List[z3.BoolRef]:
    """Stack pointer starts inside the stack area with room for the instruction."""
    layout = layout or DEFAULT_LAYOUT
    sp = z3.Select(memory, _cell(layout, layout.stack_pointer))
    pops, pushes = get_stack_effect(instruction.operation)
    return [
        z3.UGE(sp, word(layout.stack_base + pops)),
        z3.ULE(sp, word(layout.stack_limit - pushes)),
    ]


@dataclass
class VerificationResult:
    instruction: str
    proved: bool
    reason: str = ""
    counterexample: Dict[str, int] = field(default_factory=dict)


def verify_instruction(
    instruction: Instruction,
    layout: Optional[MemoryLayout] = None,
    lines: Optional[List[str]] = None,
) -> VerificationResult:
    """
    Prove that the code emitted for `instruction` matches the VM semantics.

    Args:
        instruction: A parsed, non-blank instruction.
        layout: Memory layout the code was generated for.
        lines: Code to check; generated on the fly when omitted.

    Raises:
        GenerationError: When no code can be generated for the instruction.
    """
    layout = layout or DEFAULT_LAYOUT
    if lines is None:
        lines = CodeGenerator(layout).lines_for(
            instruction.operation, instruction.segment, instruction.operand
        )

    initial = z3.Array("ram", BV16, BV16)
    machine = SymbolicHackMachine(initial, layout)
    try:
        machine.execute(lines)
    except SimulationError as e:
        logger.warning("Instruction not verifiable", instruction=instruction.text, error=str(e))
        return VerificationResult(instruction.text, proved=False, reason=str(e))

    expected = reference_effect(instruction, initial, layout)

    addr = z3.BitVec("addr", WORD_BITS)
    solver = z3.Solver()
    solver.add(*preconditions(instruction, initial, layout))
    solver.add(addr != _cell(layout, layout.scratch))
    solver.add(z3.Select(machine.memory, addr) != z3.Select(expected, addr))

    outcome = solver.check()
    if outcome == z3.unsat:
        logger.debug("Instruction verified", instruction=instruction.text)
        return VerificationResult(instruction.text, proved=True)

    if outcome == z3.sat:
        model = solver.model()
        sp = z3.Select(initial, _cell(layout, layout.stack_pointer))
        counterexample = {
            "addr": model.eval(addr, model_completion=True).as_long(),
            "sp": model.eval(sp, model_completion=True).as_long(),
            "emitted": model.eval(z3.Select(machine.memory, addr), model_completion=True).as_long(),
            "expected": model.eval(z3.Select(expected, addr), model_completion=True).as_long(),
        }
        logger.error(
            "Instruction verification failed", instruction=instruction.text, **counterexample
        )
        return VerificationResult(
            instruction.text,
            proved=False,
            reason="emitted code diverges from the VM semantics",
            counterexample=counterexample,
        )

    return VerificationResult(instruction.text, proved=False, reason=f"solver returned {outcome}")


def verify_instructions(
    instructions: Iterable[Instruction], layout: Optional[MemoryLayout] = None
) -> List[VerificationResult]:
    """Verify each distinct instruction once, using the lines it was generated with."""
    seen: Dict[str, VerificationResult] = {}
    for instruction in instructions:
        if instruction.is_blank or instruction.text in seen:
            continue
        lines = instruction.emitted_lines if instruction.generated else None
        seen[instruction.text] = verify_instruction(instruction, layout, lines)
    return list(seen.values())
