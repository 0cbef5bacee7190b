"""VM translator - Transforms stack VM code into Hack assembly."""

import argparse
import logging
import sys
from pathlib import Path

from codewriter import (
    Translator,
    TranslatorConfig,
    TranslatorError,
    metadata_to_json,
    open_output,
)
from vm_parser import ParserError


from typing import Optional

logger = logging.getLogger(__name__)


def translate_file(
    input_path: Path,
    output_path: Path,
    annotate: bool = False,
    metadata_path: Optional[Path] = None,
) -> None:
    source = input_path.read_text(encoding="utf-8")

    config = TranslatorConfig(
        annotate=annotate, collect_metadata=metadata_path is not None
    )
    translator = Translator(input_path.stem, config)

    with open_output(output_path) as sink:
        metadata = translator.translate(source, sink)

    if metadata is not None and metadata_path is not None:
        metadata_path.parent.mkdir(parents=True, exist_ok=True)
        metadata_path.write_text(metadata_to_json(metadata))
        logger.debug("Wrote metadata to %s", metadata_path)


def main() -> int:
    argparser = argparse.ArgumentParser(
        description="Translate stack VM code to Hack assembly"
    )
    argparser.add_argument("input", type=Path, help="Input .vm file")
    argparser.add_argument("-o", "--output", type=Path, help="Output .asm file")
    argparser.add_argument(
        "--annotate",
        action="store_true",
        help="Precede each command's assembly with the VM source as a comment",
    )
    argparser.add_argument(
        "--metadata",
        type=Path,
        help="Write a JSON report mapping each VM command to its assembly",
    )
    argparser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )

    args = argparser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(levelname)s] %(message)s",
    )

    if not args.input.is_file():
        print(f"Error: Input file not found: {args.input}", file=sys.stderr)
        return 1

    output_path = args.output
    if output_path is None:
        output_path = args.input.with_suffix(".asm")

    try:
        translate_file(
            args.input,
            output_path,
            annotate=args.annotate,
            metadata_path=args.metadata,
        )
        print(f"Translated: {args.input} -> {output_path}")
        return 0
    except (ParserError, TranslatorError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
