"""Translates VM commands into Hack assembly."""

from dataclasses import dataclass
import io
import logging
from typing import Callable, Dict, List, Optional, Type

from hack_memory import HackMemory
from vm_lexer import Lexer
from vm_parser import (
    ArithmeticCommand,
    ArithmeticOp,
    CallCommand,
    Command,
    FunctionCommand,
    GotoCommand,
    IfGotoCommand,
    LabelCommand,
    Parser,
    PopCommand,
    PushCommand,
    ReturnCommand,
    Segment,
)

from .config import TranslatorConfig, TranslatorError
from .metadata import CommandMapping, TranslationMetadata
from .output import AsmSink

logger = logging.getLogger(__name__)


@dataclass
class TranslationState:
    """Mutable state of one translation."""

    file_basename: str
    label_seq: int = 0

    def next_label(self, prefix: str) -> str:
        label = f"{prefix}${self.label_seq}"
        self.label_seq += 1
        return label


class CodeWriter:
    """Emits the assembly template for each VM command.

    Every template assumes SP holds the address one past the top of stack.
    """

    BASE_REGISTERS = {
        Segment.LOCAL: "LCL",
        Segment.ARGUMENT: "ARG",
        Segment.THIS: "THIS",
        Segment.THAT: "THAT",
    }

    POINTER_REGISTERS = ("THIS", "THAT")

    # Binary ops: x op y, result replaces x
    BINARY_COMPUTE = {
        ArithmeticOp.ADD: "M=D+M",
        ArithmeticOp.SUB: "M=M-D",
        ArithmeticOp.AND: "M=D&M",
        ArithmeticOp.OR: "M=D|M",
    }

    UNARY_COMPUTE = {
        ArithmeticOp.NEG: "M=-M",
        ArithmeticOp.NOT: "M=!M",
    }

    COMPARISON_JUMPS = {
        ArithmeticOp.EQ: ("EQ", "JEQ"),
        ArithmeticOp.GT: ("GT", "JGT"),
        ArithmeticOp.LT: ("LT", "JLT"),
    }

    HALT_LABEL = "END"

    def __init__(
        self,
        sink: AsmSink,
        file_basename: str,
        config: Optional[TranslatorConfig] = None,
    ):
        self.sink = sink
        self.config = config or TranslatorConfig()
        self.state = TranslationState(file_basename=file_basename)
        self._started = False
        self._closed = False
        self._dispatch = self._build_dispatch_table()

    def _build_dispatch_table(self) -> Dict[Type, Callable[..., List[str]]]:
        return {
            ArithmeticCommand: self._write_arithmetic,
            PushCommand: self._write_push,
            PopCommand: self._write_pop,
            LabelCommand: self._write_label,
            GotoCommand: self._write_goto,
            IfGotoCommand: self._write_if,
            FunctionCommand: self._write_function,
            CallCommand: self._write_call,
            ReturnCommand: self._write_return,
        }

    @property
    def file_basename(self) -> str:
        return self.state.file_basename

    def set_file_name(self, file_basename: str) -> None:
        """Rename the file scope. Only allowed before anything is emitted."""
        if self._started and file_basename != self.state.file_basename:
            raise TranslatorError(
                f"File name is fixed to {self.state.file_basename!r} once output has started"
            )
        self.state.file_basename = file_basename

    def write(self, command: Command) -> List[str]:
        """Emit the template for one command and return the emitted lines."""
        if self._closed:
            raise TranslatorError("Writer is closed", command.line)

        handler = self._dispatch.get(type(command))
        if handler is None:
            raise TranslatorError(
                f"Unsupported command: {command!r}", getattr(command, "line", 0)
            )

        lines = handler(command)
        if self.config.annotate and command.text:
            lines = [f"// {command.text}"] + lines
        self._emit(lines)
        return lines

    def close(self) -> List[str]:
        """Terminate the program with a halting loop."""
        if self._closed:
            return []
        self._closed = True

        lines: List[str] = []
        if self.config.emit_halt_loop:
            lines = [f"({self.HALT_LABEL})", f"@{self.HALT_LABEL}", "0;JMP"]
            self._emit(lines)
        logger.debug(
            "%s: %d instructions emitted", self.file_basename, self.sink.instruction_count
        )
        return lines

    def _emit(self, lines: List[str]) -> None:
        self._started = True
        self.sink.write_lines(lines)

    def scope_label(self, label: str) -> str:
        return f"{self.state.file_basename}${label}"

    def static_symbol(self, index: int) -> str:
        return f"{self.state.file_basename}.{index}"

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def _write_arithmetic(self, cmd: ArithmeticCommand) -> List[str]:
        op = cmd.op
        if op in self.BINARY_COMPUTE:
            # D = y, A = &x
            return ["@SP", "AM=M-1", "D=M", "@SP", "A=M-1", self.BINARY_COMPUTE[op]]

        if op in self.UNARY_COMPUTE:
            return ["@SP", "A=M-1", self.UNARY_COMPUTE[op]]

        if op in self.COMPARISON_JUMPS:
            prefix, jump = self.COMPARISON_JUMPS[op]
            return self._comparison(prefix, jump)

        raise TranslatorError(f"Unsupported operator: {op.value}", cmd.line)

    def _comparison(self, prefix: str, jump: str) -> List[str]:
        """x - y decides the result; the subtraction wraps at 16 bits."""
        true_label = self.state.next_label(f"{prefix}_TRUE")
        end_label = self.state.next_label(f"{prefix}_END")
        return [
            "@SP",
            "AM=M-1",
            "D=M",
            "@SP",
            "A=M-1",
            "D=M-D",
            f"@{true_label}",
            f"D;{jump}",
            "@SP",
            "A=M-1",
            "M=0",
            f"@{end_label}",
            "0;JMP",
            f"({true_label})",
            "@SP",
            "A=M-1",
            "M=-1",
            f"({end_label})",
        ]

    # ------------------------------------------------------------------
    # Memory access
    # ------------------------------------------------------------------

    @staticmethod
    def _push_d() -> List[str]:
        return ["@SP", "A=M", "M=D", "@SP", "M=M+1"]

    @staticmethod
    def _pop_d() -> List[str]:
        return ["@SP", "AM=M-1", "D=M"]

    def _write_push(self, cmd: PushCommand) -> List[str]:
        segment, index = cmd.segment, cmd.index

        if segment == Segment.CONSTANT:
            return self._push_constant(index)

        if segment in self.BASE_REGISTERS:
            base = self.BASE_REGISTERS[segment]
            return [f"@{base}", "D=M", f"@{index}", "A=D+A", "D=M"] + self._push_d()

        return [f"@{self._direct_address(cmd)}", "D=M"] + self._push_d()

    def _write_pop(self, cmd: PopCommand) -> List[str]:
        segment, index = cmd.segment, cmd.index

        if segment == Segment.CONSTANT:
            raise TranslatorError("Cannot pop to the constant segment", cmd.line)

        if segment in self.BASE_REGISTERS:
            base = self.BASE_REGISTERS[segment]
            scratch = HackMemory.ADDRESS_SCRATCH
            # Stage base+index in scratch, the pop clobbers A and D
            return [
                f"@{base}",
                "D=M",
                f"@{index}",
                "D=D+A",
                f"@{scratch}",
                "M=D",
            ] + self._pop_d() + [f"@{scratch}", "A=M", "M=D"]

        return self._pop_d() + [f"@{self._direct_address(cmd)}", "M=D"]

    def _direct_address(self, cmd) -> str:
        """Symbol or address for temp, pointer and static."""
        if cmd.segment == Segment.TEMP:
            return str(HackMemory.temp_address(cmd.index))
        if cmd.segment == Segment.POINTER:
            if cmd.index not in (0, 1):
                raise TranslatorError(f"pointer index must be 0 or 1, got {cmd.index}", cmd.line)
            return self.POINTER_REGISTERS[cmd.index]
        if cmd.segment == Segment.STATIC:
            return self.static_symbol(cmd.index)
        raise TranslatorError(f"Unsupported segment: {cmd.segment.value}", cmd.line)

    def _push_constant(self, value: int) -> List[str]:
        return [f"@{value}", "D=A"] + self._push_d()

    # ------------------------------------------------------------------
    # Branching
    # ------------------------------------------------------------------

    def _write_label(self, cmd: LabelCommand) -> List[str]:
        return [f"({self.scope_label(cmd.name)})"]

    def _write_goto(self, cmd: GotoCommand) -> List[str]:
        return [f"@{self.scope_label(cmd.label)}", "0;JMP"]

    def _write_if(self, cmd: IfGotoCommand) -> List[str]:
        # Any nonzero value counts as true, not only -1
        return self._pop_d() + [f"@{self.scope_label(cmd.label)}", "D;JNE"]

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def _write_function(self, cmd: FunctionCommand) -> List[str]:
        lines = [f"({cmd.name})"]
        for _ in range(cmd.num_locals):
            lines.extend(self._push_constant(0))
        return lines

    def _write_call(self, cmd: CallCommand) -> List[str]:
        """Build the caller frame that return tears down.

        Pushes the return address and the caller's LCL, ARG, THIS, THAT,
        then ARG = SP - nArgs - 5 and LCL = SP.
        """
        return_label = self.scope_label(f"ret.{self.state.label_seq}")
        self.state.label_seq += 1

        lines = [f"@{return_label}", "D=A"] + self._push_d()
        for reg in ("LCL", "ARG", "THIS", "THAT"):
            lines.extend([f"@{reg}", "D=M"] + self._push_d())
        lines.extend(
            [
                "@SP",
                "D=M",
                f"@{cmd.num_args + HackMemory.FRAME_SIZE}",
                "D=D-A",
                "@ARG",
                "M=D",
                "@SP",
                "D=M",
                "@LCL",
                "M=D",
                f"@{cmd.name}",
                "0;JMP",
                f"({return_label})",
            ]
        )
        return lines

    def _write_return(self, cmd: ReturnCommand) -> List[str]:
        """Tear down the callee frame.

        FRAME = LCL
        RET   = *(FRAME - 5)
        *ARG  = pop()
        SP    = ARG + 1
        THAT  = *(FRAME - 1)
        THIS  = *(FRAME - 2)
        ARG   = *(FRAME - 3)
        LCL   = *(FRAME - 4)
        goto RET
        """
        frame = HackMemory.FRAME_SCRATCH
        ret = HackMemory.RETURN_SCRATCH

        lines = [
            "@LCL",
            "D=M",
            f"@{frame}",
            "M=D",
            f"@{HackMemory.FRAME_SIZE}",
            "A=D-A",
            "D=M",
            f"@{ret}",
            "M=D",
        ]
        lines.extend(self._pop_d() + ["@ARG", "A=M", "M=D"])
        lines.extend(["@ARG", "D=M+1", "@SP", "M=D"])
        for reg in ("THAT", "THIS", "ARG", "LCL"):
            lines.extend([f"@{frame}", "AM=M-1", "D=M", f"@{reg}", "M=D"])
        lines.extend([f"@{ret}", "A=M", "0;JMP"])
        return lines


class Translator:
    """Drives the parser over a VM source and feeds the code writer."""

    def __init__(self, file_basename: str, config: Optional[TranslatorConfig] = None):
        self.file_basename = file_basename
        self.config = config or TranslatorConfig()
        self.metadata: Optional[TranslationMetadata] = None

    def translate(self, source: str, sink: AsmSink) -> Optional[TranslationMetadata]:
        """Translate a whole source file into ``sink``.

        Raises:
            MalformedCommand: At the first invalid line; nothing after it is emitted
        """
        parser = Parser(Lexer(source).tokenize())
        writer = CodeWriter(sink, self.file_basename, self.config)
        self.metadata = (
            TranslationMetadata(file_basename=self.file_basename)
            if self.config.collect_metadata
            else None
        )

        count = 0
        while parser.has_more_commands():
            parser.advance()
            command = parser.current()
            logger.debug("L%d: %s", command.line, command.text)

            lines = writer.write(command)
            count += 1
            if self.metadata is not None:
                self.metadata.mappings.append(
                    CommandMapping(
                        source_line=command.line,
                        source_text=command.text,
                        command_type=command.type.value,
                        lines=lines,
                    )
                )

        writer.close()
        logger.info(
            "Translated %s: %d commands, %d instructions",
            self.file_basename,
            count,
            sink.instruction_count,
        )
        return self.metadata


def translate(
    source: str, file_basename: str, config: Optional[TranslatorConfig] = None
) -> str:
    """Translate VM source text and return the assembly listing."""
    buffer = io.StringIO()
    Translator(file_basename, config).translate(source, AsmSink(buffer))
    return buffer.getvalue()
