"""
Memory layout conventions for the target machine.

    RAM[0]        SP    next free stack slot
    RAM[1]        LCL   base of `local`
    RAM[2]        ARG   base of `argument`
    RAM[3]        THIS  base of `this` (pointer 0)
    RAM[4]        THAT  base of `that` (pointer 1)
    RAM[5-12]           `temp` segment, 8 cells
    RAM[13-15]          general purpose (R13 is the translator's scratch cell)
    RAM[256-2047]       stack
"""

import dataclasses
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import structlog
import yaml

from .errors import LayoutError
from .instruction import Segment

logger = structlog.get_logger()

NUM_REGISTERS = 16

# Predefined symbolic cells of the target assembler
PREDEFINED_SYMBOLS: Dict[str, int] = {
    "SP": 0,
    "LCL": 1,
    "ARG": 2,
    "THIS": 3,
    "THAT": 4,
    **{f"R{i}": i for i in range(NUM_REGISTERS)},
}


@dataclass(frozen=True)
class MemoryLayout:
    """Immutable set of addressing conventions honoured by the code generator."""

    stack_pointer: str = "SP"
    local_base: str = "LCL"
    argument_base: str = "ARG"
    this_base: str = "THIS"
    that_base: str = "THAT"
    temp_base: int = 5
    temp_size: int = 8
    scratch: str = "R13"
    stack_base: int = 256
    stack_limit: int = 2048

    def __post_init__(self):
        self.validate()

    def base_cell(self, segment: Segment) -> str:
        """Symbol of the cell holding the base address of an indirect segment."""
        cells = {
            Segment.LOCAL: self.local_base,
            Segment.ARGUMENT: self.argument_base,
            Segment.THIS: self.this_base,
            Segment.THAT: self.that_base,
        }
        try:
            return cells[segment]
        except KeyError:
            raise LayoutError(f"segment {segment.value!r} has no base-pointer cell") from None

    def pointer_cell(self, index: int) -> str:
        """`pointer 0` aliases the THIS cell, `pointer 1` the THAT cell."""
        if index == 0:
            return self.this_base
        if index == 1:
            return self.that_base
        raise LayoutError(f"pointer index must be 0 or 1, got {index}")

    def address_of(self, symbol: str) -> int:
        try:
            return PREDEFINED_SYMBOLS[symbol]
        except KeyError:
            raise LayoutError(f"unknown cell symbol {symbol!r}") from None

    def symbol_table(self) -> Dict[str, int]:
        return dict(PREDEFINED_SYMBOLS)

    @property
    def temp_range(self) -> range:
        return range(self.temp_base, self.temp_base + self.temp_size)

    @property
    def stack_capacity(self) -> int:
        return self.stack_limit - self.stack_base

    def validate(self) -> None:
        """Check that the configured regions do not overlap."""
        cells = {
            "stack_pointer": self.stack_pointer,
            "local_base": self.local_base,
            "argument_base": self.argument_base,
            "this_base": self.this_base,
            "that_base": self.that_base,
            "scratch": self.scratch,
        }
        addresses: Dict[int, str] = {}
        for name, symbol in cells.items():
            address = self.address_of(symbol)
            if address in addresses:
                raise LayoutError(f"{name} and {addresses[address]} share RAM[{address}]")
            addresses[address] = name
            if address in self.temp_range:
                raise LayoutError(f"{name} ({symbol}) lies inside the temp region")

        if self.temp_size <= 0:
            raise LayoutError("temp_size must be positive")
        if self.temp_base < 0 or self.temp_base + self.temp_size > self.stack_base:
            raise LayoutError("temp region must lie below the stack")
        if self.stack_base < NUM_REGISTERS:
            raise LayoutError(f"stack_base must not overlap the registers R0-R{NUM_REGISTERS - 1}")
        if self.stack_base >= self.stack_limit:
            raise LayoutError("stack_base must be below stack_limit")
        if self.stack_limit > 0x8000:
            raise LayoutError("stack_limit must fit the 15-bit address space")

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "MemoryLayout":
        if not data:
            return cls()
        if not isinstance(data, Mapping):
            raise LayoutError("layout configuration must be a mapping")
        types = {f.name: f.type for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - set(types))
        if unknown:
            raise LayoutError(f"unknown layout keys: {', '.join(unknown)}")
        for key, value in data.items():
            # bool is an int subclass but never a valid address
            if not isinstance(value, types[key]) or isinstance(value, bool):
                raise LayoutError(f"layout key {key!r} must be of type {types[key].__name__}")
        return cls(**dict(data))

    @classmethod
    def from_yaml(cls, path: str) -> "MemoryLayout":
        """Load layout overrides from a YAML file (top level or under `layout:`)."""
        logger.debug("Loading memory layout", path=path)
        with open(path, "r") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise LayoutError(f"cannot parse layout file {path}: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise LayoutError(f"layout file {path} must contain a mapping")
        if "layout" in data:
            data = data["layout"]
        layout = cls.from_dict(data)
        logger.info("Memory layout loaded", path=path, **dataclasses.asdict(layout))
        return layout


DEFAULT_LAYOUT = MemoryLayout()
