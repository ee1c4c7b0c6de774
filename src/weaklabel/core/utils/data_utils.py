from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel, ValidationError

from ...models import Document


def load_documents(input_dir: str | Path, suffix: str = "_clean.jsonl") -> list[Document]:
    """
    Load cleaned documents from every ``*{suffix}`` file in a directory.

    Files are read in sorted order so document indices are reproducible.
    Lines that are not valid JSON or not valid documents are logged and
    skipped.

    Args:
        input_dir: Directory containing cleaned JSONL files.
        suffix: File name suffix identifying cleaned corpus files.

    Returns:
        The loaded documents, in file then line order.
    """
    input_path = Path(input_dir)
    if not input_path.is_dir():
        raise FileNotFoundError(f"Input directory not found: {input_path}")

    documents: list[Document] = []
    for file_path in sorted(input_path.glob(f"*{suffix}")):
        with open(file_path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    documents.append(Document.from_record(json.loads(line)))
                except (json.JSONDecodeError, ValidationError, TypeError, ValueError) as e:
                    logger.error(f"Error parsing document in {file_path.name}:{line_number}: {e}")

    logger.info(f"Loaded {len(documents)} documents from {input_path}")
    return documents


def write_jsonl(records: Iterable[BaseModel | dict[str, Any]], output_path: str | Path) -> int:
    """
    Stream records to a JSON Lines file, one independently parseable record per line.

    Returns:
        Number of records written.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    with open(output_path, "w", encoding="utf-8") as f:
        for record in records:
            if isinstance(record, BaseModel):
                f.write(record.model_dump_json())
            else:
                f.write(json.dumps(record))
            f.write("\n")
            count += 1
    return count


def read_jsonl(input_path: str | Path) -> list[dict[str, Any]]:
    """Read every non-empty line of a JSON Lines file."""
    with open(input_path, "r", encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


def write_json(data: BaseModel | dict[str, Any], output_path: str | Path) -> None:
    """Write a single JSON document with indentation."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    payload = data.model_dump(mode="json") if isinstance(data, BaseModel) else data
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
