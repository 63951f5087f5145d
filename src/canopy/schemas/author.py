"""Author and actor schemas."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Literal

from pydantic import BaseModel, Field

THROTTLE_CAPABILITY = "throttle"


class RegisteredAuthor(BaseModel):
    """An author with a user account."""

    kind: Literal["registered"] = "registered"
    user_id: int = Field(..., gt=0)


class AnonymousAuthor(BaseModel):
    """An author posting without an account."""

    kind: Literal["anonymous"] = "anonymous"
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=320)
    website: str | None = Field(None, max_length=500)
    # Filled from the request when the client does not send it.
    origin_address: str = Field("", max_length=64)


Author = Annotated[RegisteredAuthor | AnonymousAuthor, Field(discriminator="kind")]


@dataclass(frozen=True)
class Actor:
    """The author of a submission plus the capabilities they hold."""

    author: RegisteredAuthor | AnonymousAuthor
    capabilities: frozenset[str] = field(default_factory=frozenset)

    @property
    def user_id(self) -> int | None:
        """Return the registered user id, or None for anonymous actors."""
        if isinstance(self.author, RegisteredAuthor):
            return self.author.user_id
        return None

    @property
    def is_anonymous(self) -> bool:
        return isinstance(self.author, AnonymousAuthor)

    def can(self, capability: str) -> bool:
        """Return True when the actor holds ``capability``."""
        return capability in self.capabilities

    @property
    def activity_key(self) -> str:
        """Key used to look up the actor's last posting time."""
        if isinstance(self.author, AnonymousAuthor):
            return f"ip:{self.author.origin_address}"
        return f"user:{self.author.user_id}"
