"""Authenticated principal passed to user-scoped operations."""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AuthContext:
    """Identity of the user an operation runs on behalf of."""
    user_id: int
    email: Optional[str] = None

    @property
    def actor(self) -> str:
        """Label stored as `triggered_by` on job runs."""
        return self.email or f"user:{self.user_id}"
