"""
Barber Invitations

Three flows connect a Barber row (a person on the agenda) with a login account:

invite_barber(barber_id, email, name)
    Owner-initiated. Reuses the account registered under the email, or creates
    a password-less invited account. Grants the barber role and stores user_id
    and email on the barber.

issue_invite_token(barber_id) / validate_invite(token)
    Shareable invite link. The token is a UUID stored on the barber; validation
    reports which barber/unit/company it belongs to without exposing phone
    numbers or ids of other tenants.

link_barber_account(barber_id, user_id, invite_token=None)
    Final step. When a token is given it must match the stored one. The token
    is cleared so the link cannot be reused.

Granting the barber role is non-fatal in both invite and link: the barber
row is the source of truth, the role only widens what the account can see.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Barber, Company, Unit, User, ROLE_BARBER
from . import auth_service

logger = logging.getLogger(__name__)

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

INVITE_NOT_FOUND = "Invite not found or expired"
INVITE_ALREADY_USED = "This invite has already been used"
INVITE_MALFORMED = "Invalid invite token"

FALLBACK_UNIT_NAME = "Unit"
FALLBACK_COMPANY_NAME = "Company"


class InviteError(Exception):
    """Invitation problem; status is the HTTP status the RPC answers with."""

    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.status = status


@dataclass(frozen=True)
class InviteResult:
    user_id: int
    created_account: bool
    redirect_url: str | None = None

    @property
    def message(self) -> str:
        if self.created_account:
            return "Invitation sent by email"
        return "User already existed and was linked to the barber"

    def to_dict(self) -> dict:
        return {"success": True, "userId": self.user_id, "message": self.message}


def is_valid_token(token) -> bool:
    return isinstance(token, str) and bool(_UUID_RE.match(token))


def _get_barber(barber_id) -> Barber:
    barber = db.session.get(Barber, barber_id) if barber_id is not None else None
    if barber is None:
        raise InviteError("Barber not found", status=404)
    return barber


def _grant_barber_role(user_id: int) -> None:
    try:
        auth_service.assign_role(user_id, ROLE_BARBER)
    except (SQLAlchemyError, auth_service.AccountError):
        db.session.rollback()
        logger.exception("Could not grant barber role to user %s", user_id)


def invite_barber(
    barber_id: int,
    email: str,
    name: str,
    *,
    redirect_url: str | None = None,
) -> InviteResult:
    if not barber_id or not email or not name:
        raise InviteError("Missing required fields: barberId, email, name")

    barber = _get_barber(barber_id)
    normalized = auth_service.normalize_email(email)

    user = auth_service.find_user_by_email(normalized)
    created = user is None
    if created:
        user = auth_service.create_invited_user(normalized, {"name": name, "role": ROLE_BARBER})
        # Delivery goes through the mail gateway; the link is logged for operators
        logger.info("Invited %s as barber %s (redirect %s)", normalized, barber.id, redirect_url)
    else:
        logger.info("Account %s already exists, linking to barber %s", user.id, barber.id)

    _grant_barber_role(user.id)

    barber.user_id = user.id
    barber.email = normalized
    # A linked barber has no open invite link
    barber.invite_token = None
    db.session.commit()

    return InviteResult(user_id=user.id, created_account=created, redirect_url=redirect_url)


def issue_invite_token(barber_id: int) -> str:
    barber = _get_barber(barber_id)
    if barber.user_id is not None:
        raise InviteError(INVITE_ALREADY_USED)
    barber.invite_token = str(uuid.uuid4())
    db.session.commit()
    return barber.invite_token


def validate_invite(token) -> dict:
    if not is_valid_token(token):
        raise InviteError(INVITE_MALFORMED, status=400)

    barber = db.session.query(Barber).filter(Barber.invite_token == token.lower()).first()
    if barber is None:
        raise InviteError(INVITE_NOT_FOUND, status=404)
    if barber.user_id is not None:
        raise InviteError(INVITE_ALREADY_USED, status=400)

    unit = db.session.get(Unit, barber.unit_id)
    company = db.session.get(Company, unit.company_id) if unit is not None else None

    return {
        "valid": True,
        "barber": {
            "id": barber.id,
            "name": barber.name,
            "email": barber.email,
            "unit_name": unit.name if unit is not None and unit.name else FALLBACK_UNIT_NAME,
            "company_name": company.name if company is not None and company.name else FALLBACK_COMPANY_NAME,
        },
    }


def link_barber_account(barber_id: int, user_id: int, invite_token: str | None = None) -> Barber:
    if not barber_id or not user_id:
        raise InviteError("Missing required fields: barberId, userId")

    if invite_token:
        if not is_valid_token(invite_token):
            raise InviteError(INVITE_MALFORMED)
        barber = db.session.query(Barber).filter_by(id=barber_id, invite_token=invite_token.lower()).first()
        if barber is None:
            logger.warning("Rejected invite token for barber %s", barber_id)
            raise InviteError(INVITE_MALFORMED)
        if barber.user_id is not None:
            logger.warning("Invite token for already linked barber %s", barber_id)
            raise InviteError(INVITE_ALREADY_USED)
    else:
        barber = _get_barber(barber_id)

    if db.session.get(User, user_id) is None:
        raise InviteError("User not found", status=404)

    barber.user_id = user_id
    barber.invite_token = None
    db.session.commit()

    _grant_barber_role(user_id)
    logger.info("Linked user %s to barber %s", user_id, barber_id)
    return barber
