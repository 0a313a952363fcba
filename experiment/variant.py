"""Variant values returned by a fetch."""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class Variant:
    """Assigned treatment for one flag."""

    value: str
    """Variant value, empty string when the server sent none."""

    payload: Any = None
    """Opaque JSON payload attached to the variant."""


VariantMap = Dict[str, Variant]
