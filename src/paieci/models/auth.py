"""Identity-provider payloads."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class AuthClaims(BaseModel):
    user_id: str
    company_id: str  # tenant boundary for every query
    role: str
    email: str = ""


class AuthResult(BaseModel):
    success: bool
    claims: Optional[AuthClaims] = None
    error: Optional[str] = None
