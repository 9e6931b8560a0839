"""
Translator from stack VM programs to 16-bit register machine assembly.
"""

# Core model
from .core.instruction import Instruction, Operation, Segment, parse
from .core.layout import DEFAULT_LAYOUT, MemoryLayout
from .core.errors import (
    TranslationError,
    ParseError,
    InvalidOperation,
    InvalidSegment,
    InvalidOperand,
    MalformedInstruction,
    GenerationError,
    UnsupportedInstruction,
    SegmentIndexOutOfRange,
    UnresolvedInstruction,
    LayoutError,
)

# Translation
from .generator import CodeGenerator, generate
from .translator import Translation, VMTranslator

__version__ = "0.1.0"
