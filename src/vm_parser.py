"""
VM Parser - Classifies VM command lines.
Turns scanned source lines into typed, validated commands.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union
import re

from hack_memory import HackMemory, MAX_CONSTANT
from vm_lexer import Lexer, SourceLine


class CommandType(Enum):
    """Kind of a VM command."""

    ARITHMETIC = "arithmetic"
    PUSH = "push"
    POP = "pop"
    LABEL = "label"
    GOTO = "goto"
    IF_GOTO = "if-goto"
    FUNCTION = "function"
    RETURN = "return"
    CALL = "call"


class ArithmeticOp(Enum):
    """Arithmetic and logical operators."""

    ADD = "add"
    SUB = "sub"
    NEG = "neg"
    EQ = "eq"
    GT = "gt"
    LT = "lt"
    AND = "and"
    OR = "or"
    NOT = "not"


class Segment(Enum):
    """Memory segment addressed by push/pop."""

    CONSTANT = "constant"
    LOCAL = "local"
    ARGUMENT = "argument"
    THIS = "this"
    THAT = "that"
    TEMP = "temp"
    POINTER = "pointer"
    STATIC = "static"


# Largest index accepted per segment
SEGMENT_LIMITS: Dict[Segment, int] = {
    Segment.CONSTANT: MAX_CONSTANT,
    Segment.LOCAL: MAX_CONSTANT,
    Segment.ARGUMENT: MAX_CONSTANT,
    Segment.THIS: MAX_CONSTANT,
    Segment.THAT: MAX_CONSTANT,
    Segment.TEMP: HackMemory.TEMP_SIZE - 1,
    Segment.POINTER: 1,
    Segment.STATIC: HackMemory.STATIC_SIZE - 1,
}


@dataclass
class ArithmeticCommand:
    op: ArithmeticOp
    line: int = 0
    text: str = ""

    type = CommandType.ARITHMETIC


@dataclass
class PushCommand:
    segment: Segment
    index: int
    line: int = 0
    text: str = ""

    type = CommandType.PUSH


@dataclass
class PopCommand:
    segment: Segment
    index: int
    line: int = 0
    text: str = ""

    type = CommandType.POP


@dataclass
class LabelCommand:
    name: str
    line: int = 0
    text: str = ""

    type = CommandType.LABEL


@dataclass
class GotoCommand:
    label: str
    line: int = 0
    text: str = ""

    type = CommandType.GOTO


@dataclass
class IfGotoCommand:
    label: str
    line: int = 0
    text: str = ""

    type = CommandType.IF_GOTO


@dataclass
class FunctionCommand:
    name: str
    num_locals: int
    line: int = 0
    text: str = ""

    type = CommandType.FUNCTION


@dataclass
class CallCommand:
    name: str
    num_args: int
    line: int = 0
    text: str = ""

    type = CommandType.CALL


@dataclass
class ReturnCommand:
    line: int = 0
    text: str = ""

    type = CommandType.RETURN


# Union type for all command types
Command = Union[
    ArithmeticCommand,
    PushCommand,
    PopCommand,
    LabelCommand,
    GotoCommand,
    IfGotoCommand,
    FunctionCommand,
    CallCommand,
    ReturnCommand,
]


class ParserError(Exception):
    """Exception raised for parser errors."""

    def __init__(self, message: str, line: int = 0, text: str = ""):
        self.message = message
        self.line = line
        self.text = text
        super().__init__(f"Parser error at line {line}: {message}")


class MalformedCommand(ParserError):
    """A source line that is not a well-formed VM command."""

    def __init__(self, message: str, line: int = 0, text: str = ""):
        self.message = message
        self.line = line
        self.text = text
        Exception.__init__(self, f"Malformed command at line {line}: {message}: {text!r}")


class Parser:
    """
    Classifier for VM commands.

    Usage:
        parser = Parser(lines)
        while parser.has_more_commands():
            parser.advance()
            command = parser.current()
    """

    ARITHMETIC_OPS = frozenset(op.value for op in ArithmeticOp)

    KEYWORDS: Dict[str, CommandType] = {
        "push": CommandType.PUSH,
        "pop": CommandType.POP,
        "label": CommandType.LABEL,
        "goto": CommandType.GOTO,
        "if-goto": CommandType.IF_GOTO,
        "function": CommandType.FUNCTION,
        "return": CommandType.RETURN,
        "call": CommandType.CALL,
    }

    # Number of tokens including the keyword
    ARITY: Dict[CommandType, int] = {
        CommandType.ARITHMETIC: 1,
        CommandType.PUSH: 3,
        CommandType.POP: 3,
        CommandType.LABEL: 2,
        CommandType.GOTO: 2,
        CommandType.IF_GOTO: 2,
        CommandType.FUNCTION: 3,
        CommandType.RETURN: 1,
        CommandType.CALL: 3,
    }

    # Assembler symbols: letters, digits, _ . $ : and not starting with a digit
    SYMBOL = re.compile(r"[A-Za-z_.$:][A-Za-z0-9_.$:]*")

    # ASCII digits only, int() rejects other Unicode digits
    NUMBER = re.compile(r"[0-9]+")

    def __init__(self, lines: List[SourceLine]):
        """Initialize parser with scanned source lines."""
        self.lines = lines
        self.pos = -1
        self._line: Optional[SourceLine] = None

    def has_more_commands(self) -> bool:
        return self.pos + 1 < len(self.lines)

    def advance(self) -> None:
        """Move to the next command line."""
        if not self.has_more_commands():
            raise ParserError("No more commands", self._line.line if self._line else 0)
        self.pos += 1
        self._line = self.lines[self.pos]

    def _current_line(self) -> SourceLine:
        if self._line is None:
            raise ParserError("advance() has not been called")
        return self._line

    def _malformed(self, reason: str) -> MalformedCommand:
        line = self._current_line()
        return MalformedCommand(reason, line.line, line.text)

    def command_type(self) -> CommandType:
        """Classify the current line by its first token."""
        line = self._current_line()
        keyword = line.tokens[0]

        if keyword in self.ARITHMETIC_OPS:
            ctype = CommandType.ARITHMETIC
        elif keyword in self.KEYWORDS:
            ctype = self.KEYWORDS[keyword]
        else:
            raise self._malformed(f"unknown command {keyword!r}")

        expected = self.ARITY[ctype]
        if len(line.tokens) != expected:
            raise self._malformed(
                f"{keyword} takes {expected - 1} operand(s), got {len(line.tokens) - 1}"
            )
        return ctype

    def arg1(self) -> str:
        """First argument: the operator for arithmetic, else the first operand."""
        ctype = self.command_type()
        tokens = self._current_line().tokens
        if ctype == CommandType.ARITHMETIC:
            return tokens[0]
        if ctype == CommandType.RETURN:
            raise ParserError("return has no arguments", self._current_line().line)
        return tokens[1]

    def arg2(self) -> int:
        """Second argument: index, local count or argument count."""
        ctype = self.command_type()
        if ctype not in (
            CommandType.PUSH,
            CommandType.POP,
            CommandType.FUNCTION,
            CommandType.CALL,
        ):
            raise ParserError(
                f"{ctype.value} has no second argument", self._current_line().line
            )
        return self._parse_number(self._current_line().tokens[2])

    def current(self) -> Command:
        """Build the validated command for the current line."""
        ctype = self.command_type()
        line = self._current_line()
        meta = {"line": line.line, "text": line.text}

        if ctype == CommandType.ARITHMETIC:
            return ArithmeticCommand(op=ArithmeticOp(self.arg1()), **meta)

        if ctype in (CommandType.PUSH, CommandType.POP):
            segment = self._parse_segment(self.arg1())
            index = self.arg2()
            self._validate_segment_index(ctype, segment, index)
            if ctype == CommandType.PUSH:
                return PushCommand(segment=segment, index=index, **meta)
            return PopCommand(segment=segment, index=index, **meta)

        if ctype == CommandType.LABEL:
            return LabelCommand(name=self._parse_symbol(self.arg1()), **meta)

        if ctype == CommandType.GOTO:
            return GotoCommand(label=self._parse_symbol(self.arg1()), **meta)

        if ctype == CommandType.IF_GOTO:
            return IfGotoCommand(label=self._parse_symbol(self.arg1()), **meta)

        if ctype == CommandType.FUNCTION:
            name = self._parse_symbol(self.arg1())
            return FunctionCommand(name=name, num_locals=self.arg2(), **meta)

        if ctype == CommandType.CALL:
            name = self._parse_symbol(self.arg1())
            return CallCommand(name=name, num_args=self.arg2(), **meta)

        return ReturnCommand(**meta)

    def parse(self) -> Iterator[Command]:
        """
        Yield every remaining command in order.

        Raises:
            MalformedCommand: At the first line that is not a valid command
        """
        while self.has_more_commands():
            self.advance()
            yield self.current()

    def _parse_number(self, value: str) -> int:
        if not self.NUMBER.fullmatch(value):
            raise self._malformed(f"expected a non-negative integer, got {value!r}")
        return int(value)

    def _parse_segment(self, value: str) -> Segment:
        try:
            return Segment(value)
        except ValueError:
            raise self._malformed(f"unknown segment {value!r}") from None

    def _parse_symbol(self, value: str) -> str:
        if not self.SYMBOL.fullmatch(value):
            raise self._malformed(f"invalid symbol {value!r}")
        return value

    def _validate_segment_index(
        self, ctype: CommandType, segment: Segment, index: int
    ) -> None:
        if ctype == CommandType.POP and segment == Segment.CONSTANT:
            raise self._malformed("cannot pop to the constant segment")

        limit = SEGMENT_LIMITS[segment]
        if index > limit:
            raise self._malformed(
                f"{segment.value} index must be in 0..{limit}, got {index}"
            )


def parse(lines: List[SourceLine]) -> List[Command]:
    """Convenience function to classify a list of scanned lines."""
    parser = Parser(lines)
    return list(parser.parse())


def parse_source(source: str) -> List[Command]:
    """
    Convenience function to parse source code directly.

    Args:
        source: VM source code

    Returns:
        Commands in source order
    """
    lexer = Lexer(source)
    return parse(lexer.tokenize())


def parse_file(filepath: Union[str, Path]) -> List[Command]:
    """Parse a .vm file."""
    with open(filepath, "r", encoding="utf-8") as f:
        source = f.read()
    return parse_source(source)
