"""Authenticated caller as seen by the engine: an id and a role. Identity itself is managed elsewhere."""
from dataclasses import dataclass

from teesheet.core.constants import ROLE_CUSTOMER, STAFF_ROLES


@dataclass(frozen=True)
class Actor:
    id: str | None = None
    role: str = ROLE_CUSTOMER

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


SYSTEM_ACTOR = Actor(id="system", role="Admin")
