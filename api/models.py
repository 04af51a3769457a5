"""
API request and response models for AccountHub REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are kept
separate from the dataclasses in auth/models.py, which own the stored shape;
route handlers map between the two.

Request fields are all optional on purpose: a missing field is a domain
ValidationError with a specific message ("email and password required"),
while a body that does not parse at all -- bad JSON, wrong types, not an
object -- fails here and becomes the generic 400 "invalid body".

Field names follow the JSON contract (camelCase, e.g. newPassword); Python
attribute names are snake_case with aliases.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = Field(default=None, max_length=1024)
    name: Optional[str] = None
    role: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = Field(default=None, max_length=1024)


class AccountUpdate(BaseModel):
    """Only name and description are mutable through the update route."""

    id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None


class ResetTokenRequest(BaseModel):
    email: Optional[str] = None


class ResetCompletion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    token: Optional[str] = None
    new_password: Optional[str] = Field(default=None, alias="newPassword", max_length=1024)


class FollowerCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    account_id: Optional[str] = Field(default=None, alias="accountId")
    email: Optional[str] = None
    name: Optional[str] = None


class NotifyFollowersRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    account_id: Optional[str] = Field(default=None, alias="accountId")
    threshold: Optional[int] = None
    message: Optional[str] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class PublicAccount(BaseModel):
    """Public Account View. Extra stored keys pass through; credentials never reach here."""

    model_config = ConfigDict(extra="allow")

    id: str
    email: str
    name: Optional[str] = None
    role: str
    createdAt: str


class SignupResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: Optional[str] = None
    createdAt: str
    role: str


class AccountUpdateResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = "updated"
    id: str
    name: Optional[str] = None
    description: Optional[str] = None


class ResetTokenResponse(BaseModel):
    """The token is returned in the body because no mail transport exists."""

    model_config = ConfigDict(frozen=True)

    message: str = "reset token generated"
    token: str


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class Follower(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    accountId: str
    email: str
    name: Optional[str] = None
    subscribedAt: str


class NotifyFollowersResponse(BaseModel):
    """notified=False carries `needed`; notified=True carries `emails` and `message`."""

    notified: bool
    count: int
    needed: Optional[int] = None
    emails: Optional[list[str]] = None
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    error: str


class HealthResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
