"""Strip volatile fields from Kubernetes resource documents.

Used to compare resources that carry no kind-specific progress details and
to produce deterministic documents for golden-output comparisons.
Scrubbing is idempotent: ``scrub(scrub(d)) == scrub(d)``.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from typing import Any

FieldPredicate = Callable[[str], bool]

_VOLATILE_FIELDS = frozenset({"annotations", "uid", "conditions", "resourceVersion", "managedFields"})


def is_volatile_field(name: str) -> bool:
    """Default predicate: timestamps, identity and bookkeeping fields."""
    return "Time" in name or name in _VOLATILE_FIELDS


def scrub(document: Any, predicate: FieldPredicate = is_volatile_field) -> Any:
    """Return a copy of *document* without any mapping key matching *predicate*."""
    if isinstance(document, Mapping):
        return {key: scrub(value, predicate) for key, value in document.items() if not predicate(str(key))}
    if isinstance(document, list):
        return [scrub(item, predicate) for item in document]
    return document


def scrub_json(text: str, predicate: FieldPredicate = is_volatile_field) -> str:
    """Scrub a JSON document and re-serialise it with stable indentation."""
    return json.dumps(scrub(json.loads(text), predicate), indent=2)
