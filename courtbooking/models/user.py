"""Pydantic models for user records and the signed-in session."""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class UserRecord(BaseModel):
    """Row of the ``users`` table (profile + admin flag)."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    email: str = ""
    full_name: str = ""
    is_admin: bool = False
    avatar_url: Optional[str] = None


class UserSession(BaseModel):
    """Explicit session context for one signed-in user.

    Established when a bearer token is restored against the identity
    provider (or on sign-in), invalidated at sign-out.  Services receive
    it as an argument instead of reading ambient state.
    """

    user_id: str
    email: str = ""
    access_token: str = ""
    is_admin: bool = False
    full_name: str = ""
    avatar_url: Optional[str] = None
