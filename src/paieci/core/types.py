"""Type aliases used across the PaieCI engine."""

from __future__ import annotations

from typing import Any

JsonDict = dict[str, Any]
