"""
Approved-grant checks and single-use consumption.

An approved EditRequest authorises exactly one mutation by its requester.
It stays usable while ``expires_at`` is NULL or in the future and, when a
TTL is configured, while ``approved_at`` is younger than the TTL. Consuming
it stamps ``expires_at = now``. Expiry is lazy: nothing sweeps old grants.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app, has_app_context

from core.permissions.constants import (
    ADMIN_DIRECT_REASON,
    ADMIN_DIRECT_REQUEST_ID,
    DEFAULT_GRANT_TTL_MINUTES,
    GrantStatus,
    is_editor,
    is_elevated,
)


@dataclass(frozen=True)
class ActiveGrant:
    """Attribution for an authorised mutation."""

    request_id: str
    reason: str
    grant_id: int | None = None

    @property
    def is_admin_direct(self) -> bool:
        return self.request_id == ADMIN_DIRECT_REQUEST_ID


ADMIN_DIRECT = ActiveGrant(request_id=ADMIN_DIRECT_REQUEST_ID,
                           reason=ADMIN_DIRECT_REASON)


def grant_ttl_minutes():
    if not has_app_context():
        return DEFAULT_GRANT_TTL_MINUTES
    return int(current_app.config.get('EDIT_GRANT_TTL_MINUTES',
                                      DEFAULT_GRANT_TTL_MINUTES) or 0)


def _usable_grants(requester_id, now, resource_type=None, resource_id=None):
    from models import db, EditRequest

    q = EditRequest.query.filter(
        EditRequest.agent_id == requester_id,
        EditRequest.status == GrantStatus.APPROVED.value,
        db.or_(EditRequest.expires_at.is_(None), EditRequest.expires_at > now),
    )
    if resource_type is not None:
        q = q.filter(EditRequest.resource_type == resource_type)
    if resource_id is not None:
        q = q.filter(EditRequest.resource_id == str(resource_id))
    ttl = grant_ttl_minutes()
    if ttl > 0:
        q = q.filter(EditRequest.approved_at > now - timedelta(minutes=ttl))
    return q.order_by(EditRequest.approved_at.desc())


def has_active_grant(resource_type, resource_id, requester_id, caller_role):
    """Return the ActiveGrant authorising requester_id to edit, or None.

    Elevated roles always get the synthetic ``admin_direct`` attribution.
    Editor roles need an approved, unconsumed, unexpired grant; the most
    recently approved one wins. Any other role gets None.
    """
    if is_elevated(caller_role):
        return ADMIN_DIRECT
    if not is_editor(caller_role):
        return None

    grant = _usable_grants(
        requester_id, datetime.utcnow(),
        resource_type=resource_type, resource_id=resource_id,
    ).first()
    if grant is None:
        return None

    return ActiveGrant(request_id=str(grant.id), reason=grant.reason or '',
                       grant_id=grant.id)


def consume_edit_grant(resource_type, resource_id, requester_id,
                       grant_id=None, commit=True):
    """Mark the requester's approved grant(s) for a resource as used.

    A single conditional UPDATE: only rows still approved and unexpired are
    touched, so of two concurrent callers exactly one sees a non-zero count.
    Calling it again finds nothing to update.

    Args:
        resource_type: Resource kind.
        resource_id: Target record id.
        requester_id: Owner of the grant.
        grant_id: Restrict to one grant (the one the caller checked).
        commit: Commit immediately (default) so consumption survives a
                later failure in the same request.

    Returns:
        int: Number of grants consumed.
    """
    from models import db, EditRequest

    now = datetime.utcnow()
    q = EditRequest.query.filter(
        EditRequest.agent_id == requester_id,
        EditRequest.resource_type == resource_type,
        EditRequest.resource_id == str(resource_id),
        EditRequest.status == GrantStatus.APPROVED.value,
        db.or_(EditRequest.expires_at.is_(None), EditRequest.expires_at > now),
    )
    if grant_id is not None:
        q = q.filter(EditRequest.id == grant_id)

    count = q.update({EditRequest.expires_at: now}, synchronize_session=False)
    if commit:
        db.session.commit()

    if count:
        print(f"[perm] consumed {count} grant(s) on {resource_type}/{resource_id} "
              f"for user={requester_id}")
    return count


def get_active_permissions(requester_id, resource_type=None):
    """Resource ids the requester currently holds a usable grant on."""
    seen = []
    for grant in _usable_grants(requester_id, datetime.utcnow(),
                                resource_type=resource_type).all():
        if grant.resource_id not in seen:
            seen.append(grant.resource_id)
    return seen
