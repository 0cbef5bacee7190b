"""Minimal Hack assembler and CPU used to execute generated code in tests."""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Union

from codewriter import TranslatorConfig, translate
from hack_memory import HackMemory, WORD_MASK, to_signed

Comp = Callable[[int, int, int], int]

COMP_TABLE: Dict[str, Comp] = {
    "0": lambda a, d, m: 0,
    "1": lambda a, d, m: 1,
    "-1": lambda a, d, m: -1,
    "D": lambda a, d, m: d,
    "A": lambda a, d, m: a,
    "M": lambda a, d, m: m,
    "!D": lambda a, d, m: ~d,
    "!A": lambda a, d, m: ~a,
    "!M": lambda a, d, m: ~m,
    "-D": lambda a, d, m: -d,
    "-A": lambda a, d, m: -a,
    "-M": lambda a, d, m: -m,
    "D+1": lambda a, d, m: d + 1,
    "A+1": lambda a, d, m: a + 1,
    "M+1": lambda a, d, m: m + 1,
    "D-1": lambda a, d, m: d - 1,
    "A-1": lambda a, d, m: a - 1,
    "M-1": lambda a, d, m: m - 1,
    "D+A": lambda a, d, m: d + a,
    "D+M": lambda a, d, m: d + m,
    "D-A": lambda a, d, m: d - a,
    "D-M": lambda a, d, m: d - m,
    "A-D": lambda a, d, m: a - d,
    "M-D": lambda a, d, m: m - d,
    "D&A": lambda a, d, m: d & a,
    "D&M": lambda a, d, m: d & m,
    "D|A": lambda a, d, m: d | a,
    "D|M": lambda a, d, m: d | m,
}

JUMP_TABLE: Dict[Optional[str], Callable[[int], bool]] = {
    None: lambda v: False,
    "JGT": lambda v: v > 0,
    "JEQ": lambda v: v == 0,
    "JGE": lambda v: v >= 0,
    "JLT": lambda v: v < 0,
    "JNE": lambda v: v != 0,
    "JLE": lambda v: v <= 0,
    "JMP": lambda v: True,
}


class AsmError(Exception):
    pass


@dataclass
class AInstruction:
    value: int


@dataclass
class CInstruction:
    dest: str
    comp: Comp
    jump: Callable[[int], bool]


Instruction = Union[AInstruction, CInstruction]


def assemble(listing: str) -> Tuple[List[Instruction], Dict[str, int]]:
    """Two-pass assembly into decoded instructions plus the symbol table."""
    lines: List[str] = []
    for raw in listing.splitlines():
        text = raw.split("//", 1)[0].strip()
        if text:
            lines.append(text)

    symbols = HackMemory.predefined_symbols()
    rom_addr = 0
    for text in lines:
        if text.startswith("("):
            label = text[1:-1]
            if label in symbols:
                raise AsmError(f"Label redefined: {label}")
            symbols[label] = rom_addr
        else:
            rom_addr += 1

    program: List[Instruction] = []
    next_var = HackMemory.STATIC_BASE
    for text in lines:
        if text.startswith("("):
            continue
        if text.startswith("@"):
            token = text[1:]
            if token.isdigit():
                value = int(token)
            else:
                if token not in symbols:
                    symbols[token] = next_var
                    next_var += 1
                value = symbols[token]
            if value > 32767:
                raise AsmError(f"Constant out of range: {text}")
            program.append(AInstruction(value))
            continue

        dest, jump = "", None
        comp = text
        if "=" in comp:
            dest, comp = comp.split("=", 1)
        if ";" in comp:
            comp, jump = comp.split(";", 1)
        if comp not in COMP_TABLE or jump not in JUMP_TABLE:
            raise AsmError(f"Invalid instruction: {text}")
        program.append(CInstruction(dest, COMP_TABLE[comp], JUMP_TABLE[jump]))

    return program, symbols


class HackMachine:
    """Executes assembled Hack programs on 32K words of RAM."""

    def __init__(self, listing: str):
        self.rom, self.symbols = assemble(listing)
        self.ram = [0] * 32768
        self.a = 0
        self.d = 0
        self.pc = 0
        self.steps = 0

    def __getitem__(self, address) -> int:
        """Signed value at a RAM address or symbol."""
        if isinstance(address, str):
            address = self.symbols[address]
        return to_signed(self.ram[address])

    def __setitem__(self, address, value: int) -> None:
        if isinstance(address, str):
            address = self.symbols[address]
        self.ram[address] = value & WORD_MASK

    def step(self) -> None:
        instr = self.rom[self.pc]
        self.steps += 1
        if isinstance(instr, AInstruction):
            self.a = instr.value
            self.pc += 1
            return

        a = self.a
        out = instr.comp(to_signed(a), to_signed(self.d), to_signed(self.ram[a])) & WORD_MASK
        if "M" in instr.dest:
            self.ram[a] = out
        if "A" in instr.dest:
            self.a = out
        if "D" in instr.dest:
            self.d = out
        if instr.jump(to_signed(out)):
            self.pc = a
        else:
            self.pc += 1

    def run(self, stop_at: str = "END", max_steps: int = 200_000) -> "HackMachine":
        """Run until the PC reaches ``stop_at`` or falls off the program."""
        target = self.symbols[stop_at]
        while self.pc != target and self.pc < len(self.rom):
            if self.steps >= max_steps:
                raise RuntimeError(f"Program did not reach {stop_at} in {max_steps} steps")
            self.step()
        return self

    @property
    def stack(self) -> List[int]:
        """Signed stack contents from the stack base up to SP."""
        return [to_signed(v) for v in self.ram[HackMemory.STACK_BASE : self.ram[0]]]


def run_vm(
    source: str,
    basename: str = "Test",
    ram: Optional[Dict] = None,
    stop_at: str = "END",
    config: Optional[TranslatorConfig] = None,
) -> HackMachine:
    """Translate, assemble and run VM source with SP set to the stack base."""
    machine = HackMachine(translate(source, basename, config))
    machine["SP"] = HackMemory.STACK_BASE
    for address, value in (ram or {}).items():
        machine[address] = value
    return machine.run(stop_at=stop_at)
