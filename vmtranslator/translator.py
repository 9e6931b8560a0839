"""
Single-pass translation driver.

Every source line is parsed; every non-blank instruction is handed to the
code generator right away. The first parse or generation error aborts the
whole run, so a Translation only exists for fully translated programs.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

import structlog

from . import writer
from .core.instruction import Instruction, parse
from .core.layout import DEFAULT_LAYOUT, MemoryLayout
from .generator import CodeGenerator, bootstrap

logger = structlog.get_logger()


@dataclass
class Translation:
    """Result of translating one VM program."""

    source: str
    layout: MemoryLayout
    instructions: List[Instruction] = field(default_factory=list)

    @property
    def unresolved(self) -> List[Instruction]:
        return [instr for instr in self.instructions if instr.unresolved]

    @property
    def assembly_lines(self) -> List[str]:
        """All generated lines in order, without comments or separators."""
        return [line for instr in self.instructions for line in instr.emitted_lines]

    def render(self, emit_comments: bool = True, with_bootstrap: bool = False) -> str:
        preamble = None
        if with_bootstrap:
            preamble = bootstrap(self.layout)
            if emit_comments:
                preamble = ["// bootstrap"] + preamble
        return writer.render(self.instructions, emit_comments, preamble)

    def __len__(self) -> int:
        return len(self.instructions)


class VMTranslator:
    """
    Translate VM programs to target assembly.

    Args:
        layout: Memory layout conventions (defaults to the standard layout).
        allow_unresolved: Emit placeholders for static accesses instead of failing.
    """

    def __init__(self, layout: Optional[MemoryLayout] = None, allow_unresolved: bool = True):
        self.layout = layout or DEFAULT_LAYOUT
        self.generator = CodeGenerator(self.layout, allow_unresolved)

    def translate_lines(self, lines: Iterable[str], source: str = "<string>") -> Translation:
        """
        Translate an iterable of source lines (without line terminators).

        Raises:
            ParseError: On the first syntactically invalid line.
            GenerationError: On the first instruction with no translation.
        """
        logger.info("Starting translation", source=source)
        translation = Translation(source=source, layout=self.layout)
        for line_number, raw in enumerate(lines, start=1):
            instruction = parse(raw, line_number)
            if instruction.is_blank:
                continue
            self.generator.generate(instruction)
            translation.instructions.append(instruction)

        logger.info(
            "Translation finished",
            source=source,
            instructions=len(translation),
            unresolved=len(translation.unresolved),
        )
        return translation

    def translate_source(self, text: str, source: str = "<string>") -> Translation:
        return self.translate_lines(text.splitlines(), source)

    def translate_file(self, path: str) -> Translation:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
        return self.translate_source(text, source=path)
