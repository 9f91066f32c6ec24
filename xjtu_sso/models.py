"""
Data Models Module

This module defines Pydantic models for the values exchanged between the
client's components and returned to callers.

Models are organized by functional area:
- Credential models (constructor inputs)
- Token and login outcome models
- MFA models (detection result, second-factor channel)
- Derived session models (WebVPN ticket, EHall entries)
- Personal info models
"""

from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Credential Models
# ============================================================================

class LoginCredentials(BaseModel):
    """NetID/password credentials."""
    netid: str = Field(..., description="University NetID", min_length=1)
    password: str = Field(..., description="Account password")
    user_agent: Optional[str] = Field(None, description="User-Agent override")
    device_id: Optional[str] = Field(None, description="Device identifier override")
    client_id: Optional[str] = Field(None, description="Client identifier override")


class TokenCredentials(BaseModel):
    """A previously issued identity token pair."""
    id_token: str = Field(..., description="Identity token", min_length=1)
    refresh_token: Optional[str] = Field(None, description="Refresh token")
    user_agent: Optional[str] = Field(None, description="User-Agent override")
    device_id: Optional[str] = Field(None, description="Device identifier override")
    client_id: Optional[str] = Field(None, description="Client identifier override")


# ============================================================================
# Token Models
# ============================================================================

class TokenPair(BaseModel):
    """Identity token pair issued by the SSO password login."""
    id_token: str = Field(..., description="Identity token presented to services")
    refresh_token: str = Field(default="", description="Refresh token")


class Authenticated(BaseModel):
    """Login finished; the identity session now holds ``tokens``."""
    kind: Literal["authenticated"] = "authenticated"
    tokens: TokenPair


class MfaPending(BaseModel):
    """Login stopped before submitting the password: a second factor is needed."""
    kind: Literal["mfa_required"] = "mfa_required"
    state: str = Field(..., description="MFA continuation token")
    gid: str = Field(..., description="Second-factor channel identifier")
    secure_phone: str = Field(..., description="Masked phone number")


LoginOutcome = Union[Authenticated, MfaPending]


# ============================================================================
# MFA Models
# ============================================================================

class MfaChallenge(BaseModel):
    """Result of an MFA detection probe."""
    need: bool = Field(..., description="Whether a second factor is required")
    state: Optional[str] = Field(None, description="Continuation token when needed")


class MfaGid(BaseModel):
    """Second-factor delivery channel bound to one MFA state."""
    gid: str = Field(..., description="Channel identifier")
    secure_phone: str = Field(default="", description="Masked phone number")


# ============================================================================
# Derived Session Models
# ============================================================================

class VpnTicket(BaseModel):
    """WebVPN ticket and the epoch time (seconds) it was acquired at."""
    ticket: str = Field(..., description="Ticket cookie value")
    ticket_time: float = Field(..., description="Acquisition time, epoch seconds")


class RoleGroup(BaseModel):
    """One EHall entrance returned by the role/menu endpoint."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    group_id: Optional[str] = Field(None, alias="groupId")
    group_name: str = Field(..., alias="groupName")
    target_url: str = Field(..., alias="targetUrl")


# ============================================================================
# Personal Info Models
# ============================================================================

class UserInfo(BaseModel):
    """Profile of the logged-in user."""
    netid: str = Field(..., description="University NetID")
    name: str = Field(default="", description="Display name")
    email: Optional[str] = Field(None, description="Email address")
    department: Optional[str] = Field(None, description="Department")
