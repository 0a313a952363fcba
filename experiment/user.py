"""
User context sent to the evaluation service.
"""

import json
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional


@dataclass
class ExperimentUser:
    """
    The subject variants are fetched for.

    Every field is optional. Unset fields are left out of the request body.
    The SDK never mutates an instance it receives from the caller.
    """

    user_id: Optional[str] = None
    device_id: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None
    dma: Optional[str] = None
    city: Optional[str] = None
    language: Optional[str] = None
    platform: Optional[str] = None
    version: Optional[str] = None
    os: Optional[str] = None
    device_manufacturer: Optional[str] = None
    device_brand: Optional[str] = None
    device_model: Optional[str] = None
    carrier: Optional[str] = None
    library: Optional[str] = None
    """Identifier of the SDK that issued the request."""

    user_properties: Dict[str, Any] = field(default_factory=dict)
    """Arbitrary context attributes used for targeting."""

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation with unset fields omitted."""
        data: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "user_properties":
                if value:
                    data[f.name] = dict(value)
            elif value is not None:
                data[f.name] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExperimentUser":
        """Build a user from its wire representation. Unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        options = {key: value for key, value in data.items() if key in known}
        if options.get("user_properties") is None:
            options.pop("user_properties", None)
        return cls(**options)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))
