from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException


@dataclass(frozen=True)
class CurrentUser:
    id: str
    name: Optional[str] = None
    email: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.id


async def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
    x_user_email: Optional[str] = Header(default=None),
) -> CurrentUser:
    """Identity forwarded by the auth proxy in front of the API."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return CurrentUser(
        id=user_id,
        name=(x_user_name or "").strip() or None,
        email=(x_user_email or "").strip() or None,
    )
