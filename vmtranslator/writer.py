"""
Rendering of translated instruction groups into an output file.

Layout of the output:

    // L0   push constant 7     optional echo of the source instruction
    @7                          generated lines
    ...
                                one blank line between groups
    // L1   ...

The final line carries no trailing newline.
"""

from typing import Iterable, List, Optional, Sequence

import structlog

from .core.instruction import Instruction

logger = structlog.get_logger()


def echo_comment(index: int, instruction: Instruction) -> str:
    """Traceability comment naming the translated instruction's position and source."""
    return f"// L{index:<3} {instruction.stripped.strip()}"


def render_groups(
    instructions: Iterable[Instruction],
    emit_comments: bool = True,
    preamble: Optional[Sequence[str]] = None,
) -> List[List[str]]:
    groups: List[List[str]] = []
    if preamble:
        groups.append(list(preamble))
    for index, instruction in enumerate(instructions):
        group = []
        if emit_comments:
            group.append(echo_comment(index, instruction))
        group.extend(instruction.emitted_lines)
        groups.append(group)
    return groups


def render(
    instructions: Iterable[Instruction],
    emit_comments: bool = True,
    preamble: Optional[Sequence[str]] = None,
) -> str:
    groups = render_groups(instructions, emit_comments, preamble)
    return "\n\n".join("\n".join(group) for group in groups)


def write(path: str, text: str) -> None:
    """Write rendered assembly to `path`, replacing any existing file."""
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
    line_count = text.count("\n") + 1 if text else 0
    logger.info("Output written", path=path, lines=line_count)
