"""Acting user identity passed into role-aware operations."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

Role = Literal["admin", "user", "viewer"]


class Actor(BaseModel):
    """The user on whose behalf an operation runs.

    Authentication happens elsewhere; the core only trusts the identifier and
    role it is handed.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    role: Role = "user"

    @property
    def privileged(self) -> bool:
        """Return True when the actor may mutate without approval."""
        return self.role == "admin"

    @property
    def can_upload(self) -> bool:
        """Return True unless the actor is read-only."""
        return self.role != "viewer"


__all__ = ["Actor", "Role"]
