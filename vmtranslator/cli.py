#!/usr/bin/env python3
"""
Command line entry point for the VM translator.

Reads a .vm file, translates it and writes the assembly next to it (or to
--output). Nothing is written unless the whole file translates.
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

import structlog
from structlog.stdlib import LoggerFactory

from .analysis.equivalence import verify_instructions
from .analysis.stack_analyzer import analyze_stack
from .core.errors import GenerationError, LayoutError, ParseError
from .core.layout import DEFAULT_LAYOUT, MemoryLayout
from .translator import VMTranslator
from . import writer

logger = structlog.get_logger()

DEFAULT_INPUT = "input.vm"

EXIT_OK = 0
EXIT_SYNTAX_ERROR = 1
EXIT_SEMANTIC_ERROR = 2
EXIT_CONFIG_ERROR = 3
EXIT_IO_ERROR = 4


def configure_logging(log_level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structured logging on stderr."""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper(), logging.INFO),
        stream=sys.stderr,
        force=True,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def default_output_path(input_path: str) -> str:
    return os.path.splitext(input_path)[0] + ".asm"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Translate stack VM programs to 16-bit register machine assembly",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("input", nargs="?", default=DEFAULT_INPUT, help="VM source file")
    parser.add_argument(
        "-o", "--output", help="Output .asm file (default: input path with an .asm suffix)"
    )
    parser.add_argument(
        "--layout",
        default=os.environ.get("VMTRANSLATOR_LAYOUT"),
        help="YAML file overriding the memory layout",
    )
    parser.add_argument(
        "--no-comments",
        action="store_true",
        help="Do not echo source instructions as comments",
    )
    parser.add_argument(
        "--bootstrap",
        action="store_true",
        help="Prepend code that initialises the stack pointer",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail on static segment accesses instead of emitting placeholders",
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Prove each distinct instruction's code against the VM semantics before writing",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("VMTRANSLATOR_LOG_LEVEL", "WARNING"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level",
    )
    parser.add_argument("--log-json", action="store_true", help="Emit logs as JSON")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging (same as DEBUG)"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Parse arguments and run the translation.

    Returns:
        Exit code: 0 on success, 1 for syntax errors, 2 for semantic errors
        (including failed verification), 3 for layout errors, 4 for I/O errors.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging("DEBUG" if args.verbose else args.log_level, args.log_json)

    if args.input == DEFAULT_INPUT:
        logger.info("No filename given, using default", input=DEFAULT_INPUT)
    output_path = args.output or default_output_path(args.input)

    try:
        layout = MemoryLayout.from_yaml(args.layout) if args.layout else DEFAULT_LAYOUT
        translator = VMTranslator(layout, allow_unresolved=not args.strict)
        translation = translator.translate_file(args.input)
    except LayoutError as e:
        logger.error("Invalid memory layout", error=str(e))
        return EXIT_CONFIG_ERROR
    except ParseError as e:
        logger.error("Syntax error", error=str(e), line_number=e.line_number)
        return EXIT_SYNTAX_ERROR
    except GenerationError as e:
        logger.error("Unsupported instruction", error=str(e), line_number=e.line_number)
        return EXIT_SEMANTIC_ERROR
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Cannot read input", path=args.input, error=str(e))
        return EXIT_IO_ERROR

    effect = analyze_stack(translation.instructions)
    if effect.required_input > 0:
        logger.warning(
            "Program pops values it never pushed",
            required_input=effect.required_input,
            net=effect.net,
        )

    if args.verify:
        checked = [instr for instr in translation.instructions if not instr.unresolved]
        failures = [r for r in verify_instructions(checked, layout) if not r.proved]
        if failures:
            for failure in failures:
                logger.error(
                    "Verification failed",
                    instruction=failure.instruction,
                    reason=failure.reason,
                    **failure.counterexample,
                )
            return EXIT_SEMANTIC_ERROR
        logger.info("All instructions verified", instructions=len(checked))

    text = translation.render(emit_comments=not args.no_comments, with_bootstrap=args.bootstrap)
    try:
        writer.write(output_path, text)
    except OSError as e:
        logger.error("Cannot write output", path=output_path, error=str(e))
        return EXIT_IO_ERROR

    summary = f"Translated {len(translation)} instructions from {args.input} to {output_path}"
    if translation.unresolved:
        summary += f" ({len(translation.unresolved)} unresolved static accesses)"
    print(summary)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
