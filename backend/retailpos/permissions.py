# Overview: Typed capability flags stored on the user record.

"""
User capabilities as a bitmask.

The user row stores a single integer; login returns the flag names so the
SPA can hide screens. The API itself only requires authentication.
"""

from __future__ import annotations

from enum import IntFlag


class Capability(IntFlag):
    NONE = 0
    POS = 1
    RETURNS = 2
    PURCHASES = 4
    EXPENSES = 8
    CLOSE_SHIFT = 16
    INVENTORY_COUNT = 32
    REPORTS = 64
    MANAGE_USERS = 128
    SETTINGS = 256


ROLE_DEFAULTS: dict[str, Capability] = {
    "admin": Capability(sum(c for c in Capability)),
    "manager": (
        Capability.POS | Capability.RETURNS | Capability.PURCHASES | Capability.EXPENSES
        | Capability.CLOSE_SHIFT | Capability.INVENTORY_COUNT | Capability.REPORTS
    ),
    "cashier": Capability.POS | Capability.RETURNS | Capability.CLOSE_SHIFT,
}


def capability_names(mask: int) -> list[str]:
    """Names of the individual flags set in `mask`, in declaration order."""
    flags = Capability(mask)
    return [c.name for c in Capability if c and c in flags]


def parse_capabilities(names: list[str]) -> Capability:
    mask = Capability.NONE
    for name in names:
        try:
            mask |= Capability[name.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown capability: {name}")
    return mask
