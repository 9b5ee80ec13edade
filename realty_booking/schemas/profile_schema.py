"""User profile models."""

from typing import Optional

from pydantic import BaseModel


class Profile(BaseModel):
    """Profile row owned by the auth backend."""
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    is_admin: bool = False

    @property
    def first_name(self) -> str:
        if not self.full_name:
            return ""
        return self.full_name.split(" ")[0]


class SignUpResult(BaseModel):
    """Outcome of an account registration."""
    user_id: Optional[str] = None
    already_exists: bool = False
