"""Shared type aliases for loadcheck."""

from __future__ import annotations

from typing import Any

# HTTP headers dictionary.
Headers = dict[str, str]

# Any value that json.dumps accepts.
JsonValue = Any
