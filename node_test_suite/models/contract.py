"""Decoded output of `cargo contract` instantiate and call invocations."""

import json
import re
from collections.abc import Iterator
from typing import Any

from node_test_suite.models.base import Model

STATUS_MARKERS = ("Ok", "success")

_RAW_ADDRESS_PATTERN = re.compile(r'"contract"\s*:\s*"([^"]*)"')
_JSON_START = re.compile(r"[{\[]")


def _iter_tokens(value: Any) -> Iterator[str]:
    """Yield every key and scalar of a decoded JSON document as text."""
    if isinstance(value, dict):
        for key, item in value.items():
            yield str(key)
            yield from _iter_tokens(item)
    elif isinstance(value, list):
        for item in value:
            yield from _iter_tokens(item)
    elif isinstance(value, bool):
        yield "true" if value else "false"
    elif value is not None:
        yield str(value)


def _find_key(value: Any, key: str) -> Any:
    if isinstance(value, dict):
        if key in value:
            return value[key]
        children = list(value.values())
    elif isinstance(value, list):
        children = value
    else:
        return None
    for child in children:
        if (found := _find_key(child, key)) is not None:
            return found
    return None


def _decode_json(text: str) -> Any:
    """Decode the JSON document embedded in the text.

    The tool may print progress lines ahead of the JSON document, some of
    which contain brackets themselves, so every top-level fragment is tried
    and the first non-empty object wins. When there is none the first
    decodable fragment is returned.
    """
    decoder = json.JSONDecoder()
    first: Any = None
    position = 0
    while match := _JSON_START.search(text, position):
        try:
            payload, position = decoder.raw_decode(text, match.start())
        except json.JSONDecodeError:
            position = match.end()
            continue
        if isinstance(payload, dict) and payload:
            return payload
        if first is None:
            first = payload
    return first


class ContractOutput(Model):
    """Output of one contract tool invocation.

    ``payload`` holds the decoded JSON document when the output contained one.
    Token checks run against the decoded keys and values; when no JSON could
    be decoded they fall back to a substring search over the raw text.
    """

    raw: str
    payload: Any = None

    @classmethod
    def parse(cls, text: str) -> "ContractOutput":
        """Decode tool output, keeping the raw text for fallback checks."""
        return cls(raw=text, payload=_decode_json(text))

    @property
    def is_structured(self) -> bool:
        """Whether a JSON document was decoded from the output."""
        return self.payload is not None

    @property
    def contract_address(self) -> str | None:
        """Address reported by an instantiate call, if any."""
        if self.is_structured:
            address = _find_key(self.payload, "contract")
            return address if isinstance(address, str) and address else None
        match = _RAW_ADDRESS_PATTERN.search(self.raw)
        return match.group(1) if match and match.group(1) else None

    def contains(self, token: str, *, ignore_case: bool = True) -> bool:
        """Check whether the output carries the given token."""
        if ignore_case:
            token = token.lower()

        haystack = _iter_tokens(self.payload) if self.is_structured else [self.raw]
        for text in haystack:
            if token in (text.lower() if ignore_case else text):
                return True
        return False

    def has_status_marker(self) -> bool:
        """Check for an ``Ok`` or ``success`` status value."""
        if self.is_structured:
            return any(token in STATUS_MARKERS for token in _iter_tokens(self.payload))
        return any(f'"{marker}"' in self.raw for marker in STATUS_MARKERS)
