"""Actor identity passed explicitly into every workflow call."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ActorContext:
    user_id: int
    name: str
    email: str
    role_id: int
    role: str
    session_id: str | None = None

    @property
    def is_admin_role(self) -> bool:
        return self.role == "admin"


def from_user(user, session_id: str | None = None) -> ActorContext:
    """Build an actor context from a loaded ``User`` row."""
    return ActorContext(
        user_id=user.id,
        name=user.name,
        email=user.email,
        role_id=user.role_id,
        role=user.role.name if user.role is not None else "",
        session_id=session_id,
    )
