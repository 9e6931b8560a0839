import pytest

from vmtranslator.analysis.reference_vm import Stack, StackMachine
from vmtranslator.core.errors import StackOverflow, StackUnderflow, UnresolvedInstructionExecuted
from vmtranslator.core.instruction import Segment, parse


def test_stack_push_pop():
    stack = Stack(capacity=2)
    stack.push(1)
    stack.push(-1)
    assert stack.pop() == 0xFFFF
    assert stack.pop() == 1
    with pytest.raises(StackUnderflow):
        stack.pop()


def test_stack_capacity():
    stack = Stack(capacity=1)
    stack.push(5)
    with pytest.raises(StackOverflow):
        stack.push(6)


def test_arithmetic_operand_order():
    vm = StackMachine()
    vm.run_source("push constant 5\npush constant 3\nsub")
    assert vm.values() == [2]
    vm.run_source("push constant 10\nadd")
    assert vm.values() == [12]


def test_segments_share_heap_through_bases():
    vm = StackMachine()
    vm.bases[Segment.THIS] = 3000
    vm.bases[Segment.LOCAL] = 2998
    vm.run_source("push constant 42\npop this 0\npush local 2")
    assert vm.values() == [42]


def test_pointer_retargets_that():
    vm = StackMachine()
    vm.write(5000, 77)
    vm.run_source("push constant 5000\npop pointer 1\npush that 0")
    assert vm.bases[Segment.THAT] == 5000
    assert vm.values() == [77]


def test_temp_segment():
    vm = StackMachine()
    vm.run_source("push constant 3\npop temp 4\npush temp 4\npush temp 0")
    assert vm.temp[4] == 3
    assert vm.values() == [3, 0]


@pytest.mark.parametrize("line", ["push static 0", "pop static 0", "pop constant 1"])
def test_unsupported_segments(line):
    vm = StackMachine()
    vm.stack.push(1)
    with pytest.raises(UnresolvedInstructionExecuted):
        vm.execute(parse(line))
    # a rejected pop leaves the stack untouched
    assert len(vm.stack) == 1


def test_blank_lines_are_skipped():
    vm = StackMachine()
    vm.run_source("// header\n\npush constant 1")
    assert vm.values() == [1]
