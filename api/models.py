"""
API request and response models for itdoc REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
orgs/models.py, which own the internal domain representation. Route handlers
map between the two.

Request models are the validation schema: a body that fails them never
reaches a store. The RequestValidationError handler in api/main.py turns the
failure into a 400 with one issue per offending field.
"""

from typing import Annotated, Literal, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from auth.models import User
from auth.tokens import MAX_PASSWORD_BYTES
from orgs.models import Member, Organization

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Surrounding whitespace is trimmed from display fields and emails only.
# Passwords are taken byte-for-byte: login does not trim, so register must not.
TrimmedName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=255)]
TrimmedEmail = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=255)]


def _check_email(value: str) -> str:
    """Reject malformed addresses; return the address exactly as submitted.

    email-validator's normalized form is discarded: emails are stored and
    matched case-sensitively, so "Alice@x.com" must stay "Alice@x.com".
    """
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValueError(str(exc)) from exc
    return value


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    The password limit is counted in UTF-8 bytes, not characters: 40 "é"
    characters are 80 bytes and would overflow bcrypt.
    """

    name: TrimmedName
    email: TrimmedEmail
    password: str = Field(min_length=8)

    @field_validator("email")
    @classmethod
    def email_well_formed(cls, v: str) -> str:
        return _check_email(v)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
        return v


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    Presence only. A malformed email or an over-long password fails to
    authenticate like any other wrong credential.
    """

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=1024)


class OrganizationCreate(BaseModel):
    """Request body for POST /api/v1/organizations."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=2, max_length=255)
    industry: Optional[str] = Field(default=None, max_length=255)
    logo: Optional[str] = Field(default=None, max_length=2048)


class MemberAdd(BaseModel):
    """Request body for POST /api/v1/organizations/{id}/members.

    role accepts "member" only. "owner" is granted exclusively by organization
    creation; nobody can assign it through this route.
    """

    email: TrimmedEmail
    role: Literal["member"] = "member"

    @field_validator("email")
    @classmethod
    def email_well_formed(cls, v: str) -> str:
        return _check_email(v)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user. There is no password field on this model."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str
    image: Optional[str] = None
    role: str
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            image=user.image,
            role=user.role,
            created_at=user.created_at or "",
            updated_at=user.updated_at or "",
        )


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = "User registered successfully"
    user: UserResponse


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str
    expires_in: int
    user: UserResponse


class OrganizationResponse(BaseModel):
    """An organization. role is the caller's membership role, when known."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    industry: Optional[str] = None
    logo: Optional[str] = None
    role: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_organization(cls, org: Organization) -> "OrganizationResponse":
        return cls(
            id=org.id,
            name=org.name,
            industry=org.industry,
            logo=org.logo,
            role=org.role,
            created_at=org.created_at,
            updated_at=org.updated_at,
        )


class OrganizationCreatedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = "Organization created successfully"
    organization: OrganizationResponse


class OrganizationListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    organizations: list[OrganizationResponse]


class MemberResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    name: str
    email: str
    image: Optional[str] = None
    global_role: str
    org_role: str

    @classmethod
    def from_member(cls, member: Member) -> "MemberResponse":
        return cls(
            user_id=member.user_id,
            name=member.name,
            email=member.email,
            image=member.image,
            global_role=member.global_role,
            org_role=member.org_role,
        )


class MemberListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    members: list[MemberResponse]


class ValidationIssue(BaseModel):
    """One field-level validation failure.

    path is the location inside the request body, e.g. ["name"] or
    ["members", 0, "email"]. The leading "body"/"query" segment is dropped.
    """

    model_config = ConfigDict(frozen=True)

    path: list[str | int]
    message: str
    code: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses.

    issues is present only on validation failures.
    """

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail
    issues: Optional[list[ValidationIssue]] = None


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
