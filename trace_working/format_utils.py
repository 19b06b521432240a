"""
Machine-readable output for trace-working.

A run is serialized as a sequence of records: one ``{"type": "commit", ...}``
per visited commit (TraversalEvent.to_dict) followed by a single
``{"type": "result", ...}`` (TraversalResult.to_dict). Errors reported by
the CLI use ``{"type": "error", ...}``.
"""

import json
from typing import Any, Dict, Iterable, Iterator

import yaml

MACHINE_FORMATS = ('jsonl', 'json', 'yaml')

Record = Dict[str, Any]


def format_output(records: Iterable[Record], format: str) -> Iterator[str]:
    """
    Serialize run records in one of MACHINE_FORMATS.

    Only jsonl is streamed record by record; json and yaml need the whole
    run and emit a single document.

    Raises:
        ValueError: For a format outside MACHINE_FORMATS
    """
    if format == "jsonl":
        yield from format_jsonl(records)
    elif format == "json":
        yield from format_json(records)
    elif format == "yaml":
        yield from format_yaml(records)
    else:
        raise ValueError(f"Unknown format: {format}")


def format_jsonl(records: Iterable[Record]) -> Iterator[str]:
    """One line per commit event or result; safe to print as the walk runs."""
    for record in records:
        yield json.dumps(record, ensure_ascii=False)


def format_json(records: Iterable[Record]) -> Iterator[str]:
    """All events and the result as one JSON array."""
    yield json.dumps(list(records), ensure_ascii=False, indent=2)


def format_yaml(records: Iterable[Record]) -> Iterator[str]:
    # Keep record keys in the order to_dict builds them
    yield yaml.safe_dump(list(records), default_flow_style=False, allow_unicode=True, sort_keys=False)
