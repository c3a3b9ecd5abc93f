"""
Edit request submission — agents ask, approvers decide.

An agent who wants to change a shared record submits an EditRequest with a
reason and optional metadata (display label, staged draft). No resource is
touched at submission time.

Enforces:
- Only editor roles (agent, usuario) may submit; elevated roles edit directly.
- At most one pending request per (resource_type, resource_id). The partial
  unique index on edit_requests is the arbiter; the application-level read
  only produces a friendlier Conflict message.
- Re-submitting while your own request is still pending updates it in place
  (reason, metadata, created_at) instead of creating a duplicate.
"""
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from core.permissions.constants import GrantStatus
from core.permissions.errors import Conflict, PermissionDenied, ValidationError
from core.permissions.identity import get_actor
from core.resources.registry import RESOURCE_TYPES


def _holder_label(edit_request):
    agent = edit_request.agent
    if agent is None:
        return f'user {edit_request.agent_id}'
    return agent.full_name


def _refresh_own_pending(resource_type, resource_id, requester_id, reason,
                         metadata, now):
    """Conditionally update the requester's pending row. Returns rowcount."""
    from models import EditRequest

    return EditRequest.query.filter(
        EditRequest.resource_type == resource_type,
        EditRequest.resource_id == resource_id,
        EditRequest.agent_id == requester_id,
        EditRequest.status == GrantStatus.PENDING.value,
    ).update({
        EditRequest.reason: reason,
        EditRequest.metadata_json: metadata,
        EditRequest.created_at: now,
    }, synchronize_session=False)


def _pending_for(resource_type, resource_id):
    from models import EditRequest

    return EditRequest.query.filter_by(
        resource_type=resource_type,
        resource_id=resource_id,
        status=GrantStatus.PENDING.value,
    ).first()


def _conflict(pending):
    return Conflict(
        f'{_holder_label(pending)} already has a pending edit request '
        f'for this record',
        holder_id=pending.agent_id,
    )


def submit_edit_request(resource_type, resource_id, requester_id, reason,
                        metadata=None):
    """Submit (or refresh) a pending edit request.

    Args:
        resource_type: Resource kind, e.g. 'flights'.
        resource_id: Target record id.
        requester_id: The agent asking for permission.
        reason: Free-form justification shown to approvers.
        metadata: Optional dict (displayId, draft, ...).

    Returns:
        The pending EditRequest.

    Raises:
        ValidationError: Unknown resource type or malformed metadata.
        PermissionDenied: Requester is not an editor role.
        Conflict: Another requester already holds the pending slot.
    """
    from models import db, EditRequest

    if resource_type not in RESOURCE_TYPES:
        raise ValidationError(f'Unknown resource type: {resource_type}')
    if metadata is not None and not isinstance(metadata, dict):
        raise ValidationError('metadata must be an object')

    actor = get_actor(requester_id)
    if not actor.editor:
        raise PermissionDenied(
            'Only agents request edit permission; this role edits directly'
            if actor.elevated else 'Access denied'
        )

    resource_id = str(resource_id)
    reason = (reason or '').strip()
    metadata = dict(metadata or {})
    now = datetime.utcnow()

    if _refresh_own_pending(resource_type, resource_id, requester_id,
                            reason, metadata, now):
        db.session.commit()
        return _pending_for(resource_type, resource_id)

    pending = _pending_for(resource_type, resource_id)
    if pending is not None:
        raise _conflict(pending)

    edit_request = EditRequest(
        agent_id=requester_id,
        resource_type=resource_type,
        resource_id=resource_id,
        reason=reason,
        status=GrantStatus.PENDING.value,
        metadata_json=metadata,
        created_at=now,
    )
    try:
        with db.session.begin_nested():
            db.session.add(edit_request)
    except IntegrityError:
        # Lost the race for the pending slot.
        pending = _pending_for(resource_type, resource_id)
        if pending is None:
            raise
        if pending.agent_id != requester_id:
            db.session.rollback()
            raise _conflict(pending)
        _refresh_own_pending(resource_type, resource_id, requester_id,
                             reason, metadata, now)
        db.session.commit()
        return _pending_for(resource_type, resource_id)

    db.session.commit()
    print(f"[perm] edit request {edit_request.id} submitted for "
          f"{resource_type}/{resource_id} by user={requester_id}")
    return edit_request


def get_edit_request(request_id):
    from models import db, EditRequest

    return db.session.get(EditRequest, request_id)


def get_pending_edit_requests(limit=100):
    """Pending requests, newest first."""
    from models import EditRequest

    return EditRequest.query.filter_by(
        status=GrantStatus.PENDING.value,
    ).order_by(EditRequest.created_at.desc()).limit(limit).all()


def get_all_edit_requests(page=1, limit=20, status=None, agent_id=None):
    """Paginated request history, newest first.

    Returns:
        (list[EditRequest], int total)
    """
    from models import EditRequest

    q = EditRequest.query
    if status is not None:
        q = q.filter_by(status=status)
    if agent_id is not None:
        q = q.filter_by(agent_id=agent_id)

    total = q.count()
    page = max(page, 1)
    items = (q.order_by(EditRequest.created_at.desc(), EditRequest.id.desc())
             .offset((page - 1) * limit).limit(limit).all())
    return items, total


def count_pending_edit_requests():
    from models import EditRequest

    return EditRequest.query.filter_by(status=GrantStatus.PENDING.value).count()
