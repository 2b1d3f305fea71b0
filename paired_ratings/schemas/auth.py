"""Authentication schemas"""

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    """Shared password login"""

    password: str = Field(..., min_length=1)


class SessionResponse(BaseModel):
    """Session state plus the display settings the SPA needs"""

    authenticated: bool
    bf_name: str
    gf_name: str
    image_base: str
