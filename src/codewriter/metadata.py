"""Metadata structures for tracking what each VM command expanded to."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from typing import Any, Dict, List

from .output import is_instruction


@dataclass
class CommandMapping:
    """Maps one source command to the assembly emitted for it."""

    source_line: int
    source_text: str
    command_type: str
    lines: List[str] = field(default_factory=list)

    @property
    def instruction_count(self) -> int:
        return sum(1 for line in self.lines if is_instruction(line))


@dataclass
class TranslationMetadata:
    """Complete metadata for a translated file."""

    file_basename: str
    mappings: List[CommandMapping] = field(default_factory=list)


def metadata_to_json(metadata: TranslationMetadata) -> str:
    """Serialize translation metadata to JSON."""

    return json.dumps(metadata_to_dict(metadata), indent=2)


def metadata_to_dict(metadata: TranslationMetadata) -> Dict[str, Any]:
    """Convert metadata to a JSON-serializable dict."""

    mappings: List[Dict[str, Any]] = []
    for m in metadata.mappings:
        mappings.append(
            {
                "source_line": m.source_line,
                "source_text": m.source_text,
                "type": m.command_type,
                "assembly": [line for line in m.lines if not line.startswith("//")],
                "instruction_count": m.instruction_count,
            }
        )

    total_source = len(mappings)
    total_output = sum(m["instruction_count"] for m in mappings)
    type_counts: Dict[str, int] = {}
    for m in mappings:
        t = m["type"]
        type_counts[t] = type_counts.get(t, 0) + 1

    return {
        "file": metadata.file_basename,
        "mappings": mappings,
        "statistics": {
            "total_source_commands": total_source,
            "total_output_instructions": total_output,
            "average_expansion_ratio": round(total_output / max(total_source, 1), 1),
            "command_type_counts": type_counts,
        },
    }
