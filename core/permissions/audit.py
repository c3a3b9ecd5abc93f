"""
Audit recorder — append-only trail of every resource mutation.

Each entry stores the actor, the action, before/after snapshots and free-form
metadata (requestId, reason, displayId, method). For updates the recorder
computes ``changed_keys`` at write time and stores the full merged post-image,
so a partial patch still yields a complete snapshot.

Entries are never updated or deleted. The grouping of entries into edit
sessions happens at read time (see sessions.py).
"""
from datetime import datetime, timedelta

from flask import current_app, has_app_context

from core.permissions.constants import (
    AuditAction,
    DEFAULT_AUDIT_DEDUP_SECONDS,
    TIMESTAMP_KEYS,
)
from core.permissions.errors import ValidationError
from core.permissions.normalizer import canonical, changed_keys


def _dedup_window():
    if not has_app_context():
        return DEFAULT_AUDIT_DEDUP_SECONDS
    return int(current_app.config.get('AUDIT_DEDUP_SECONDS',
                                      DEFAULT_AUDIT_DEDUP_SECONDS) or 0)


def _changes_fingerprint(values, keys):
    return canonical({key: (values or {}).get(key) for key in keys})


def _is_duplicate(action, resource_type, resource_id, keys, old_values,
                  new_values, now):
    """True if the latest entry for this resource replays the same change.

    The latest entry of any action is considered, so an intervening
    mutation of another kind breaks the replay.
    """
    from models import AuditLog

    window = _dedup_window()
    if window <= 0:
        return False

    latest = AuditLog.query.filter(
        AuditLog.resource_type == resource_type,
        AuditLog.resource_id == resource_id,
        AuditLog.created_at >= now - timedelta(seconds=window),
    ).order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).first()
    if latest is None or latest.action != action:
        return False

    latest_keys = (latest.metadata_json or {}).get('changed_keys') or []
    if sorted(latest_keys) != sorted(keys):
        return False
    return (_changes_fingerprint(latest.old_values, keys)
            == _changes_fingerprint(old_values, keys)
            and _changes_fingerprint(latest.new_values, keys)
            == _changes_fingerprint(new_values, keys))


def record_audit_log(actor_id, action, resource_type, resource_id,
                     old_values=None, new_values=None, metadata=None):
    """Append an audit entry for one mutation.

    Args:
        actor_id: The user who performed the mutation.
        action: An AuditAction (or its string value).
        resource_type: Resource kind, e.g. 'flights'.
        resource_id: Target record id.
        old_values: Snapshot before the mutation (None for create).
        new_values: Snapshot or patch after the mutation (None for delete).
        metadata: Optional dict; requestId/reason/displayId/method.

    Returns:
        The AuditLog instance, or None when nothing was written (an update
        that changed nothing, or a duplicate inside the dedup window).

    Raises:
        ValidationError: If action is not a known AuditAction.
    """
    from models import db, AuditLog

    try:
        action = AuditAction(action)
    except ValueError:
        raise ValidationError(f'Unknown audit action: {action!r}')

    resource_id = str(resource_id)
    now = datetime.utcnow()

    if old_values is not None and new_values is not None:
        keys = changed_keys(old_values, new_values, exclude=TIMESTAMP_KEYS)
        if action is AuditAction.UPDATE and not keys:
            return None
        stored_new_values = {**old_values, **new_values}
    else:
        keys = [k for k in (new_values or {}) if k not in TIMESTAMP_KEYS]
        stored_new_values = new_values

    if _is_duplicate(action.value, resource_type, resource_id, keys,
                     old_values, stored_new_values, now):
        print(f"[audit] duplicate {action.value} suppressed for "
              f"{resource_type}/{resource_id}")
        return None

    entry = AuditLog(
        actor_id=actor_id,
        action=action.value,
        resource_type=resource_type,
        resource_id=resource_id,
        old_values=old_values,
        new_values=stored_new_values,
        metadata_json={**(metadata or {}), 'changed_keys': keys},
        created_at=now,
    )
    db.session.add(entry)
    # Caller is responsible for commit.
    return entry


def get_resource_history(resource_type, resource_id):
    """Chronological audit entries for one resource (oldest first)."""
    from models import AuditLog

    return AuditLog.query.filter_by(
        resource_type=resource_type, resource_id=str(resource_id),
    ).order_by(AuditLog.created_at.asc(), AuditLog.id.asc()).all()


def get_audit_logs(page=1, limit=50, actor_id=None, resource_type=None,
                   resource_id=None, action=None, date_from=None,
                   date_to=None, display_id=None):
    """Paginated audit feed for administrative review, newest first.

    Args:
        page: 1-based page number.
        limit: Page size.
        actor_id: Optional filter by actor.
        resource_type: Optional filter by resource kind.
        resource_id: Optional filter by record id.
        action: Optional filter by action.
        date_from: Optional inclusive lower bound on created_at.
        date_to: Optional exclusive upper bound on created_at.
        display_id: Optional case-insensitive substring of metadata.displayId.

    Returns:
        (list[AuditLog], int total)
    """
    from models import db, AuditLog

    q = AuditLog.query

    if actor_id is not None:
        q = q.filter(AuditLog.actor_id == actor_id)
    if resource_type is not None:
        q = q.filter(AuditLog.resource_type == resource_type)
    if resource_id is not None:
        q = q.filter(AuditLog.resource_id == str(resource_id))
    if action is not None:
        q = q.filter(AuditLog.action == action)
    if date_from is not None:
        q = q.filter(AuditLog.created_at >= date_from)
    if date_to is not None:
        q = q.filter(AuditLog.created_at < date_to)
    if display_id:
        label = db.func.lower(AuditLog.metadata_json['displayId'].as_string())
        q = q.filter(label.contains(display_id.lower()))

    total = q.count()
    page = max(page, 1)
    entries = (q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
               .offset((page - 1) * limit).limit(limit).all())
    return entries, total
