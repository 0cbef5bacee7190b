"""Fixed memory layout of the Hack target machine."""

from dataclasses import dataclass
from typing import Dict, List

# Boolean encodings produced by eq/gt/lt
TRUE = -1
FALSE = 0

WORD_MASK = 0xFFFF
MAX_CONSTANT = 32767  # largest value an A-instruction can load


@dataclass
class HackRegister:
    """A predefined RAM location with a fixed role."""

    name: str
    address: int
    comment: str = ""


class HackMemory:
    """Describes the RAM layout the generated code relies on.

    The layout is fixed by the platform:
    - RAM[0..4] hold the stack pointer and the four segment bases
    - RAM[5..12] is the temp segment
    - RAM[13..15] are general purpose scratch registers
    - RAM[16..255] hold static variables, allocated by the assembler
    - the stack grows upward from RAM[256]
    """

    POINTER_REGISTERS: List[HackRegister] = [
        HackRegister("SP", 0, "stack pointer, one past top of stack"),
        HackRegister("LCL", 1, "base of the current local segment"),
        HackRegister("ARG", 2, "base of the current argument segment"),
        HackRegister("THIS", 3, "base of the this segment"),
        HackRegister("THAT", 4, "base of the that segment"),
    ]

    # Scratch registers used by pop, call and return
    ADDRESS_SCRATCH = "R13"
    FRAME_SCRATCH = "R13"
    RETURN_SCRATCH = "R14"

    TEMP_BASE = 5
    TEMP_SIZE = 8
    STATIC_BASE = 16
    STATIC_SIZE = 240
    STACK_BASE = 256
    SCREEN = 16384
    KBD = 24576

    # Words saved below the callee's LCL: return address, LCL, ARG, THIS, THAT
    FRAME_SIZE = 5

    @classmethod
    def predefined_symbols(cls) -> Dict[str, int]:
        """Return the assembler's built-in symbol table."""
        symbols = {reg.name: reg.address for reg in cls.POINTER_REGISTERS}
        symbols.update({f"R{i}": i for i in range(16)})
        symbols["SCREEN"] = cls.SCREEN
        symbols["KBD"] = cls.KBD
        return symbols

    @classmethod
    def temp_address(cls, index: int) -> int:
        return cls.TEMP_BASE + index


def to_signed(value: int) -> int:
    """Interpret a 16-bit word as a two's-complement integer."""
    value &= WORD_MASK
    return value - 0x10000 if value & 0x8000 else value
