"""Code writer package public API."""

from .config import TranslatorConfig, TranslatorError
from .core import CodeWriter, TranslationState, Translator, translate
from .output import AsmSink, open_output
from .metadata import (
    CommandMapping,
    TranslationMetadata,
    metadata_to_dict,
    metadata_to_json,
)

__all__ = [
    "AsmSink",
    "CodeWriter",
    "CommandMapping",
    "TranslationMetadata",
    "TranslationState",
    "Translator",
    "TranslatorConfig",
    "TranslatorError",
    "metadata_to_dict",
    "metadata_to_json",
    "open_output",
    "translate",
]
