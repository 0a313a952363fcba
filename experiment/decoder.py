"""
Decoding of the /sdk/vardata response body.
"""

import json
from typing import Any, Mapping, Union

from experiment.errors import DecodeError
from experiment.variant import Variant, VariantMap


def parse_json_variants(data: Any) -> VariantMap:
    """
    Convert a parsed response body into variants.

    The variant value is read from ``value``, falling back to the legacy
    ``key`` field, then to the empty string. A null value becomes the empty
    string and any other non-string value is converted with str(). ``payload``
    is required.

    Args:
        data: Parsed JSON body, a mapping of flag key to variant object

    Returns:
        Mapping of flag key to Variant

    Raises:
        DecodeError: If the body or an entry is not an object, or an entry
            has no ``payload`` field
    """
    if not isinstance(data, Mapping):
        raise DecodeError(f"Expected a JSON object, got {type(data).__name__}")

    variants: VariantMap = {}
    for flag_key, entry in data.items():
        if not isinstance(entry, Mapping):
            raise DecodeError(f"Variant for {flag_key!r} is not an object")

        if "value" in entry:
            value = entry["value"]
        elif "key" in entry:
            # value was previously under the "key" field
            value = entry["key"]
        else:
            value = ""

        if "payload" not in entry:
            raise DecodeError(f"Variant for {flag_key!r} has no payload field")

        if value is None:
            value = ""
        elif not isinstance(value, str):
            value = str(value)

        variants[flag_key] = Variant(value=value, payload=entry["payload"])
    return variants


def decode_variants(body: Union[bytes, str]) -> VariantMap:
    """Parse a raw response body into variants."""
    try:
        data = json.loads(body)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"Malformed JSON response: {e}") from e
    return parse_json_variants(data)
