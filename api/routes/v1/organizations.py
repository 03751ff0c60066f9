"""
api/routes/v1/organizations.py -- Organization and membership REST endpoints.

Routes:
  POST /api/v1/organizations                    -- create; caller becomes "owner"
  GET  /api/v1/organizations                    -- organizations the caller belongs to
  GET  /api/v1/organizations/{org_id}           -- one organization (members only)
  GET  /api/v1/organizations/{org_id}/members   -- member list (members only)
  POST /api/v1/organizations/{org_id}/members   -- add a registered user as "member"

Authorization model:
  Every route requires a session (get_current_user -> 401).
  Routes under /{org_id} additionally require a membership in that
  organization (require_org_member). Any role suffices -- there is no
  per-role permission check beyond "is a member".

  A caller who is not a member gets 404, not 403, whether or not the
  organization exists. Organization ids are not discoverable by probing.

  "owner" is granted only by POST /organizations. MemberAdd.role is a
  Literal["member"], so a body asking for "owner" fails validation (400).
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import (
    MemberAdd,
    MemberListResponse,
    MemberResponse,
    OrganizationCreate,
    OrganizationCreatedResponse,
    OrganizationListResponse,
    OrganizationResponse,
)
from auth.dependencies import get_current_user
from auth.models import User
from auth.store import UserStore
from core.errors import DuplicateMembership, MissingReference
from orgs.models import Membership
from orgs.store import OrganizationStore

logger = logging.getLogger("itdoc.api")

router = APIRouter()

_NOT_FOUND = {"code": "not_found", "message": "Organization not found."}


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def require_org_member(
    org_id: str,
    request: Request,
    current_user: User = Depends(get_current_user),
) -> Membership:
    """Require the caller to belong to the organization named in the path.

    Raises 401 (via get_current_user) if unauthenticated, 404 if the caller
    has no membership in org_id.
    """
    org_store: OrganizationStore = request.app.state.org_store
    membership = org_store.get_membership(org_id, current_user.id)
    if membership is None:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    return membership


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@router.post("/organizations", response_model=OrganizationCreatedResponse, status_code=201)
def create_organization(
    request: Request,
    body: OrganizationCreate,
    current_user: User = Depends(get_current_user),
) -> OrganizationCreatedResponse:
    """Create an organization owned by the caller.

    The organization row and the owner membership are written in one
    transaction. StoreFailure propagates to the handler in api/main.py (500).
    """
    org_store: OrganizationStore = request.app.state.org_store
    try:
        org = org_store.create_organization_with_owner(current_user.id, body.name, body.industry, body.logo)
    except MissingReference as exc:
        # Token verified but the user row is gone -- treat as a dead session.
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        ) from exc
    return OrganizationCreatedResponse(organization=OrganizationResponse.from_organization(org))


@router.get("/organizations", response_model=OrganizationListResponse)
def list_organizations(
    request: Request,
    current_user: User = Depends(get_current_user),
) -> OrganizationListResponse:
    """List the organizations the caller belongs to, with the caller's role in each."""
    org_store: OrganizationStore = request.app.state.org_store
    orgs = org_store.list_organizations_for_user(current_user.id)
    return OrganizationListResponse(organizations=[OrganizationResponse.from_organization(o) for o in orgs])


# ---------------------------------------------------------------------------
# Single organization (members only)
# ---------------------------------------------------------------------------


@router.get("/organizations/{org_id}", response_model=OrganizationResponse)
def get_organization(
    org_id: str,
    request: Request,
    membership: Membership = Depends(require_org_member),
) -> OrganizationResponse:
    org_store: OrganizationStore = request.app.state.org_store
    org = org_store.get_organization(org_id)
    if org is None:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    org.role = membership.role
    return OrganizationResponse.from_organization(org)


@router.get("/organizations/{org_id}/members", response_model=MemberListResponse)
def list_members(
    org_id: str,
    request: Request,
    membership: Membership = Depends(require_org_member),
) -> MemberListResponse:
    org_store: OrganizationStore = request.app.state.org_store
    members = org_store.list_members_for_organization(org_id)
    return MemberListResponse(members=[MemberResponse.from_member(m) for m in members])


@router.post("/organizations/{org_id}/members", response_model=MemberResponse, status_code=201)
def add_member(
    org_id: str,
    request: Request,
    body: MemberAdd,
    membership: Membership = Depends(require_org_member),
) -> MemberResponse:
    """Add an already-registered user (looked up by email) to the organization.

    404 if no user has that email, 409 if they are already a member.
    """
    user_store: UserStore = request.app.state.user_store
    org_store: OrganizationStore = request.app.state.org_store

    target = user_store.get_by_email(body.email)
    if target is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "No user with that email."},
        )
    try:
        added = org_store.add_membership(target.id, org_id, body.role)
    except DuplicateMembership as exc:
        raise HTTPException(status_code=409, detail={"code": exc.code, "message": str(exc)}) from exc
    except MissingReference as exc:
        # Organization deleted between the membership check and the insert.
        raise HTTPException(status_code=404, detail=_NOT_FOUND) from exc

    logger.info("User %s added %s to organization %s", membership.user_id, target.id, org_id)
    return MemberResponse(
        user_id=target.id,
        name=target.name,
        email=target.email,
        image=target.image,
        global_role=target.role,
        org_role=added.role,
    )
