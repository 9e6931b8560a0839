# Mapping from operation to (pops, pushes)
from dataclasses import dataclass
from typing import Dict, Iterable, Tuple

from ..core.instruction import Instruction, Operation

OPERATION_STACK_EFFECTS: Dict[Operation, Tuple[int, int]] = {
    Operation.PUSH: (0, 1),
    Operation.POP: (1, 0),
    Operation.ADD: (2, 1),
    Operation.SUB: (2, 1),
}


def get_stack_effect(operation: Operation) -> Tuple[int, int]:
    """Return (pops, pushes) for an operation."""
    return OPERATION_STACK_EFFECTS[operation]


@dataclass
class StackEffect:
    total_pops: int = 0
    total_pushes: int = 0
    # Negative when the sequence needs values already on the stack
    min_height: int = 0
    max_height: int = 0

    @property
    def net(self) -> int:
        return self.total_pushes - self.total_pops

    @property
    def required_input(self) -> int:
        return -self.min_height


def analyze_stack(instructions: Iterable[Instruction]) -> StackEffect:
    """
    Track the stack height through a straight-line instruction sequence.

    Heights are relative to the height before the first instruction, so
    `min_height` is the (negated) number of values the sequence expects to
    find on the stack and `net` is the overall change of the stack pointer.
    """
    effect = StackEffect()
    stack_height = 0

    for instr in instructions:
        if instr.is_blank or instr.operation is None:
            continue
        pops, pushes = get_stack_effect(instr.operation)

        # Check for potential stack underflow based on pops
        if stack_height < pops:
            effect.min_height = min(effect.min_height, stack_height - pops)

        stack_height -= pops
        stack_height += pushes
        effect.total_pops += pops
        effect.total_pushes += pushes
        effect.max_height = max(effect.max_height, stack_height)

    return effect
