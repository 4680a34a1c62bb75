"""Authenticated caller identity passed into every billing operation."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class Role(str, enum.Enum):
    ADMIN = "admin"
    CASHIER = "cashier"
    ENCODER = "encoder"
    SYSTEM = "system"


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation and from where."""

    id: str | None
    role: Role
    source_address: str | None = None

    @property
    def is_encoder(self) -> bool:
        return self.role is Role.ENCODER


SYSTEM_ACTOR = Actor(id=None, role=Role.SYSTEM)
