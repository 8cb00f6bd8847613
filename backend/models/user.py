"""
NAE Test Sheets - User & Session Models
Version: 1.0.0

Changelog:
v1.0.0 (2026-09-28): Initial user, session and login models
"""

from pydantic import Field
from typing import Optional

from .test_sheet import SheetModel


class User(SheetModel):
    """Authenticated user record"""
    id: str = Field(..., description="Opaque user id")
    email: Optional[str] = Field(None, description="Login email (unique)")
    first_name: Optional[str] = Field(None, description="Given name")
    last_name: Optional[str] = Field(None, description="Family name")
    profile_image_url: Optional[str] = None
    user_number: int = Field(1, ge=1, description="Sequential display number per initials")
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    @property
    def initials(self) -> str:
        """Upper-case initials, empty until both names are set"""
        if not self.first_name or not self.last_name:
            return ""
        return f"{self.first_name[0]}{self.last_name[0]}".upper()


class UserView(User):
    """User plus derived fields, as returned by /api/auth/user"""
    needs_profile_setup: bool
    display_name: str


class SessionRecord(SheetModel):
    """Row in the sessions table"""
    sid: str
    sess: str = Field(..., description="Serialized session payload (JSON)")
    expire: int = Field(..., description="Expiry as epoch seconds")

    def is_expired(self, now: int) -> bool:
        return self.expire <= now


class UserLogin(SheetModel):
    """One successful login"""
    id: str
    user_id: str
    email: str
    first_name: Optional[str] = None
    login_time: int
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class LoginRequest(SheetModel):
    username: str = ""
    email: str = ""


class ProfileUpdate(SheetModel):
    first_name: str = ""
    last_name: str = ""
