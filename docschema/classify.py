"""Value classification for decoded documents."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

import numpy as np

from .errors import UnsupportedTypeError

NUMBER = "Number"
BOOLEAN = "Boolean"
STRING = "String"
NULL = "Null"
DOCUMENT = "Document"
ARRAY = "Array"

TYPE_NAMES = (NUMBER, BOOLEAN, STRING, NULL, DOCUMENT, ARRAY)
PRIMITIVE_TYPES = frozenset({NUMBER, BOOLEAN, STRING})


def classify(value: Any, path: str = "") -> str:
    """Return the canonical type name for a decoded value."""

    if value is None:
        return NULL
    # bool is an int subclass, so it has to be matched first.
    if isinstance(value, (bool, np.bool_)):
        return BOOLEAN
    if isinstance(value, (int, float, np.integer, np.floating)):
        return NUMBER
    if isinstance(value, str):
        return STRING
    if isinstance(value, Mapping):
        return DOCUMENT
    if isinstance(value, (list, tuple, np.ndarray)):
        return ARRAY
    raise UnsupportedTypeError(path, value)


def normalize(value: Any) -> Any:
    """Convert numpy scalars to plain Python values."""

    if isinstance(value, np.generic):
        return value.item()
    return value


def join_path(parent: Optional[str], name: str) -> str:
    if not parent:
        return name
    return f"{parent}.{name}"
