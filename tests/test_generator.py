import pytest

from vmtranslator.core.asm import UNRESOLVED_MARKER, uses_generator_subset
from vmtranslator.core.errors import (
    GenerationError,
    SegmentIndexOutOfRange,
    UnresolvedInstruction,
    UnsupportedInstruction,
)
from vmtranslator.core.instruction import Operation, Segment, parse
from vmtranslator.core.layout import MemoryLayout
from vmtranslator.generator import (
    HANDLERS,
    REJECTED,
    UNRESOLVED,
    CodeGenerator,
    bootstrap,
    dispatch_keys,
    generate,
)

IN_SCOPE = [
    "push constant 17",
    "push local 2",
    "push argument 0",
    "push this 5",
    "push that 1",
    "push temp 7",
    "push pointer 0",
    "push pointer 1",
    "pop local 2",
    "pop argument 1",
    "pop this 0",
    "pop that 3",
    "pop temp 0",
    "pop pointer 0",
    "pop pointer 1",
    "add",
    "sub",
]


def test_dispatch_is_exhaustive():
    """Every (operation, segment) pair is handled, rejected or left unresolved, exactly once."""
    for key in dispatch_keys():
        categories = [key in HANDLERS, key in REJECTED, key in UNRESOLVED]
        assert categories.count(True) == 1, key
    assert len(dispatch_keys()) == 2 * len(Segment) + 2


def test_push_constant():
    assert generate(parse("push constant 17")) == [
        "@17",
        "D=A",
        "@SP",
        "A=M",
        "M=D",
        "D=A+1",
        "@SP",
        "M=D",
    ]


def test_push_local_reads_through_base_pointer():
    lines = generate(parse("push local 2"))
    assert lines[:5] == ["@2", "D=A", "@LCL", "A=D+M", "D=M"]


def test_push_temp_uses_absolute_address():
    lines = generate(parse("push temp 3"))
    assert lines[:2] == ["@8", "D=M"]


@pytest.mark.parametrize("index,cell", [(0, "@THIS"), (1, "@THAT")])
def test_push_pointer_reads_cell_itself(index, cell):
    lines = generate(parse(f"push pointer {index}"))
    assert lines[:2] == [cell, "D=M"]


def test_pop_local_never_writes_base_cell():
    lines = generate(parse("pop local 4"))
    assert lines[:6] == ["@4", "D=A", "@LCL", "D=D+M", "@R13", "M=D"]
    assert lines[-3:] == ["@R13", "A=M", "M=D"]
    # the only write right after selecting @LCL is into D
    lcl = lines.index("@LCL")
    assert lines[lcl + 1] == "D=D+M"


@pytest.mark.parametrize("index,cell", [(0, "@THIS"), (1, "@THAT")])
def test_pop_pointer_overwrites_cell(index, cell):
    lines = generate(parse(f"pop pointer {index}"))
    assert lines[-2:] == [cell, "M=D"]


def test_sub_computes_below_minus_top():
    lines = generate(parse("sub"))
    assert "D=D-M" in lines
    assert "D=D+M" not in lines


@pytest.mark.parametrize("line", IN_SCOPE)
def test_generated_lines_use_local_convention(line):
    for asm in generate(parse(line)):
        assert uses_generator_subset(asm), asm


def test_pop_constant_is_semantic_error():
    instr = parse("pop constant 3", line_number=12)
    with pytest.raises(UnsupportedInstruction) as excinfo:
        generate(instr)
    assert isinstance(excinfo.value, GenerationError)
    assert excinfo.value.line_number == 12
    assert excinfo.value.line == "pop constant 3"
    assert instr.emitted_lines == []


@pytest.mark.parametrize("line", ["push temp 8", "pop temp 100", "push pointer 2", "pop pointer 5"])
def test_index_out_of_range(line):
    with pytest.raises(SegmentIndexOutOfRange):
        generate(parse(line))


@pytest.mark.parametrize("op", ["push", "pop"])
def test_static_emits_unresolved_marker(op):
    instr = parse(f"{op} static 3")
    lines = generate(instr)
    assert lines == [f"{UNRESOLVED_MARKER} {op} static 3"]
    assert instr.unresolved


def test_static_is_fatal_when_unresolved_not_allowed():
    with pytest.raises(UnresolvedInstruction):
        generate(parse("push static 0"), allow_unresolved=False)


def test_generation_happens_once():
    instr = parse("add")
    generate(instr)
    with pytest.raises(ValueError):
        generate(instr)


def test_blank_instruction_rejected():
    with pytest.raises(ValueError):
        generate(parse("// nothing"))


def test_custom_layout_symbols():
    layout = MemoryLayout(scratch="R14", temp_base=6, temp_size=7)
    generator = CodeGenerator(layout)
    assert generator.lines_for(Operation.PUSH, Segment.TEMP, 0)[0] == "@6"
    assert "@R14" in generator.lines_for(Operation.ADD)
    with pytest.raises(SegmentIndexOutOfRange):
        generator.lines_for(Operation.POP, Segment.TEMP, 7)


def test_bootstrap_sets_stack_pointer():
    assert bootstrap(MemoryLayout(stack_base=300)) == ["@300", "D=A", "@SP", "M=D"]
