"""
VM Lexer - Line scanner for stack VM source files.
Strips comments and blank lines and splits each command into tokens.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Union
import re


@dataclass
class SourceLine:
    """One non-empty VM command line."""

    line: int  # 1-based line number in the input file
    text: str  # Command text with comment and surrounding whitespace removed
    tokens: List[str] = field(default_factory=list)

    def __repr__(self) -> str:
        return f"SourceLine(L{self.line}: {self.text!r})"


class Lexer:
    """
    Scanner for VM source text.

    Usage:
        lexer = Lexer(source_code)
        lines = lexer.tokenize()
    """

    # Everything from the comment marker to the end of the line
    COMMENT = re.compile(r"//.*$")

    # Tokens are separated by arbitrary runs of whitespace
    WHITESPACE = re.compile(r"\s+")

    def __init__(self, source: str):
        """
        Initialize the lexer with source code.

        Args:
            source: The VM source code to scan
        """
        self.source = source
        self.lines: List[SourceLine] = []

    def _strip(self, raw: str) -> str:
        """Remove an inline comment and surrounding whitespace."""
        return self.COMMENT.sub("", raw).strip()

    def _split(self, text: str) -> List[str]:
        return self.WHITESPACE.split(text)

    def tokenize(self) -> List[SourceLine]:
        """
        Scan the entire source.

        Returns:
            Non-empty command lines in source order
        """
        self.lines = []

        for number, raw in enumerate(self.source.splitlines(), start=1):
            text = self._strip(raw)
            if not text:
                continue
            self.lines.append(SourceLine(line=number, text=text, tokens=self._split(text)))

        return self.lines

    def tokenize_iter(self) -> Iterator[SourceLine]:
        """
        Scan and yield command lines one at a time.

        Yields:
            Command lines one at a time
        """
        for number, raw in enumerate(self.source.splitlines(), start=1):
            text = self._strip(raw)
            if text:
                yield SourceLine(line=number, text=text, tokens=self._split(text))


def tokenize(source: str) -> List[SourceLine]:
    """Convenience function to scan source code."""
    lexer = Lexer(source)
    return lexer.tokenize()


def tokenize_file(filepath: Union[str, Path]) -> List[SourceLine]:
    """
    Scan a VM file.

    Args:
        filepath: Path to the .vm file

    Returns:
        Non-empty command lines
    """
    with open(filepath, "r", encoding="utf-8") as f:
        source = f.read()
    return tokenize(source)
