"""
Request-scoped dependencies shared by the routers.

The caller is identified by X-Actor-Id / X-Actor-Role headers set by whatever authenticates in front
of this service. A missing role means Customer.
"""
from fastapi import Header

from teesheet.core.actor import Actor
from teesheet.core.constants import ROLE_CUSTOMER


def current_actor(
    x_actor_id: str | None = Header(None, alias="X-Actor-Id"),
    x_actor_role: str | None = Header(None, alias="X-Actor-Role"),
) -> Actor:
    actor_id = (x_actor_id or "").strip() or None
    role = (x_actor_role or "").strip() or ROLE_CUSTOMER
    return Actor(id=actor_id, role=role)


def idempotency_key(idempotency_key: str | None = Header(None, alias="Idempotency-Key")) -> str | None:
    return (idempotency_key or "").strip() or None
