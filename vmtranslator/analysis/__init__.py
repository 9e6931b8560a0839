"""
Verification tooling: target-machine simulator, reference VM, stack analysis
and symbolic equivalence checking.
"""

from .hack_machine import HackMachine
from .reference_vm import StackMachine
from .stack_analyzer import analyze_stack, get_stack_effect
from .equivalence import VerificationResult, verify_instruction, verify_instructions
