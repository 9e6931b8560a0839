import pytest
import z3

from vmtranslator.analysis.equivalence import (
    SymbolicHackMachine,
    reference_effect,
    verify_instruction,
    verify_instructions,
    word,
)
from vmtranslator.core.errors import UnsupportedInstruction
from vmtranslator.core.instruction import parse
from vmtranslator.core.layout import MemoryLayout
from vmtranslator.translator import VMTranslator

IN_SCOPE = [
    "push constant 0",
    "push constant 17",
    "push constant 32767",
    "push local 0",
    "push local 3",
    "push argument 2",
    "push this 6",
    "push that 1",
    "push temp 0",
    "push temp 7",
    "push pointer 0",
    "push pointer 1",
    "pop local 0",
    "pop local 2",
    "pop argument 1",
    "pop this 4",
    "pop that 0",
    "pop temp 3",
    "pop pointer 0",
    "pop pointer 1",
    "add",
    "sub",
]


@pytest.mark.parametrize("line", IN_SCOPE)
def test_generated_code_is_equivalent(line):
    result = verify_instruction(parse(line))
    assert result.proved, result
    assert result.instruction == parse(line).text


def test_equivalence_under_custom_layout():
    layout = MemoryLayout(scratch="R15", temp_base=6, stack_base=512, stack_limit=4096)
    for line in ("pop argument 5", "push temp 2", "sub"):
        assert verify_instruction(parse(line), layout).proved


def test_swapped_operands_are_caught():
    """Code computing top - below for `sub` is rejected with a counterexample."""
    instr = parse("sub")
    lines = VMTranslator().translate_source("sub").assembly_lines
    broken = [("D=M-D" if line == "D=D-M" else line) for line in lines]
    result = verify_instruction(instr, lines=broken)
    assert not result.proved
    assert result.counterexample["emitted"] != result.counterexample["expected"]


def test_clobbered_base_cell_is_caught():
    """Storing the target address into LCL instead of the scratch cell corrupts the base."""
    instr = parse("pop local 2")
    lines = VMTranslator().translate_source("pop local 2").assembly_lines
    broken = [("@LCL" if line == "@R13" else line) for line in lines]
    assert not verify_instruction(instr, lines=broken).proved


def test_unresolved_static_is_not_proved():
    result = verify_instruction(parse("push static 2"))
    assert not result.proved
    assert "placeholder" in result.reason


def test_pop_constant_cannot_be_verified():
    with pytest.raises(UnsupportedInstruction):
        verify_instruction(parse("pop constant 1"))


def test_verify_instructions_deduplicates():
    translation = VMTranslator().translate_source("push constant 1\npush constant 1\nadd")
    results = verify_instructions(translation.instructions)
    assert [r.instruction for r in results] == ["push constant 1", "add"]
    assert all(r.proved for r in results)


def test_symbolic_machine_push_constant():
    memory = z3.Array("ram", z3.BitVecSort(16), z3.BitVecSort(16))
    machine = SymbolicHackMachine(memory)
    machine.execute(VMTranslator().translate_source("push constant 9").assembly_lines)
    expected = reference_effect(parse("push constant 9"), memory)

    solver = z3.Solver()
    sp = z3.Select(memory, word(0))
    solver.add(sp == word(300))
    solver.add(z3.Select(machine.memory, word(300)) != z3.Select(expected, word(300)))
    assert solver.check() == z3.unsat

    solver = z3.Solver()
    solver.add(sp == word(300))
    solver.add(z3.Select(machine.memory, word(0)) != word(301))
    assert solver.check() == z3.unsat
