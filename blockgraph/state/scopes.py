"""Addressing tiers for field state."""

from __future__ import annotations

from enum import Enum


class Scope(str, Enum):
    """How a field's storage key is qualified."""

    COMPONENT = "component"  # Per instance: prefix + raw id
    SYSTEM = "system"        # Per raw id, shared by every instance
    GLOBAL = "global"        # One slot for the whole session
