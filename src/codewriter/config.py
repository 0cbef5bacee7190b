"""Translator configuration and error types."""

from dataclasses import dataclass


@dataclass
class TranslatorConfig:
    """Configuration for the translator."""

    annotate: bool = False
    collect_metadata: bool = False
    emit_halt_loop: bool = True


class TranslatorError(Exception):
    def __init__(self, message: str, line: int = 0):
        self.message = message
        self.line = line
        super().__init__(f"Translator error at line {line}: {message}")
