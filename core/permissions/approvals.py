"""
Approval gate — the only path out of the pending state.

    approve: pending -> approved. If the request carries a staged draft in
             metadata['draft'], the draft is written to the resource in the
             same transaction, an approve_edit audit entry is recorded, and
             the grant is consumed (the authorised edit has happened).
    reject:  pending -> rejected. No resource mutation, no audit entry.

Both transitions are conditional UPDATEs on status='pending', so two
approvers racing on the same request cannot both win.
"""
from datetime import datetime

from core.permissions.audit import record_audit_log
from core.permissions.constants import AuditAction, DRAFT_METADATA_KEY, GrantStatus
from core.permissions.errors import NotFound, PermissionDenied, ValidationError
from core.permissions.identity import get_actor
from core.permissions.invalidation import notify_resource_changed
from core.resources import store


def _require_approver(approver_id, verb):
    actor = get_actor(approver_id)
    if not actor.elevated:
        raise PermissionDenied(f'Only administrators or supervisors can {verb} edit requests')
    return actor


def _load_pending(request_id, verb):
    from models import db, EditRequest

    edit_request = db.session.get(EditRequest, request_id)
    if edit_request is None:
        raise NotFound('Edit request not found')
    if edit_request.status != GrantStatus.PENDING.value:
        raise ValidationError(
            f'Request is already {edit_request.status}, cannot {verb}'
        )
    return edit_request


def _transition(edit_request, status, approver_id, **extra):
    """Move a pending request to status. Returns False if it was not pending."""
    from models import EditRequest

    values = {
        EditRequest.status: status,
        EditRequest.admin_id: approver_id,
    }
    for column, value in extra.items():
        values[getattr(EditRequest, column)] = value

    count = EditRequest.query.filter(
        EditRequest.id == edit_request.id,
        EditRequest.status == GrantStatus.PENDING.value,
    ).update(values, synchronize_session=False)
    return count == 1


def _staged_draft(edit_request):
    metadata = edit_request.metadata_json or {}
    if DRAFT_METADATA_KEY not in metadata:
        return None
    draft = metadata[DRAFT_METADATA_KEY]
    if not draft:
        raise ValidationError('Staged draft payload is missing')
    if not isinstance(draft, dict):
        raise ValidationError('Staged draft payload must be an object of field values')
    return draft


def approve_edit_request(request_id, approver_id):
    """Approve a pending edit request, applying its staged draft if any.

    Args:
        request_id: The EditRequest to approve.
        approver_id: The admin or supervisor approving.

    Returns:
        dict with request_id, status, draft_applied and, when a draft was
        applied, audit_id.

    Raises:
        PermissionDenied: Approver is not elevated.
        NotFound: Request or target resource missing.
        ValidationError: Request not pending, or malformed draft.
    """
    from models import db

    _require_approver(approver_id, 'approve')
    edit_request = _load_pending(request_id, 'approve')
    draft = _staged_draft(edit_request)

    resource_type = edit_request.resource_type
    resource_id = edit_request.resource_id
    now = datetime.utcnow()
    audit_id = None

    try:
        extra = {'approved_at': now}
        if draft is not None:
            extra['expires_at'] = now
        if not _transition(edit_request, GrantStatus.APPROVED.value,
                           approver_id, **extra):
            raise ValidationError('Request is no longer pending, cannot approve')

        if draft is not None:
            before = store.read_resource(resource_type, resource_id)
            after = store.write_resource(resource_type, resource_id, draft)
            entry = record_audit_log(
                actor_id=approver_id,
                action=AuditAction.APPROVE_EDIT,
                resource_type=resource_type,
                resource_id=resource_id,
                old_values=before,
                new_values=after,
                metadata={
                    'requestId': str(edit_request.id),
                    'reason': edit_request.reason,
                    'requesterId': edit_request.agent_id,
                    'displayId': (edit_request.metadata_json or {}).get('displayId')
                                 or store.display_label(resource_type, after),
                    'method': 'approveEditRequest',
                },
            )
            db.session.flush()
            audit_id = entry.id if entry is not None else None

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    print(f"[perm] edit request {request_id} approved by user={approver_id}"
          f"{' (draft applied)' if draft is not None else ''}")

    if draft is not None:
        notify_resource_changed(resource_type, resource_id)

    result = {
        'request_id': request_id,
        'status': GrantStatus.APPROVED.value,
        'draft_applied': draft is not None,
    }
    if audit_id is not None:
        result['audit_id'] = audit_id
    return result


def reject_edit_request(request_id, approver_id):
    """Reject a pending edit request.

    Returns:
        dict with request_id and status.

    Raises:
        PermissionDenied: Approver is not elevated.
        NotFound: Request missing.
        ValidationError: Request not pending.
    """
    from models import db

    _require_approver(approver_id, 'reject')
    edit_request = _load_pending(request_id, 'reject')

    if not _transition(edit_request, GrantStatus.REJECTED.value,
                       approver_id):
        db.session.rollback()
        raise ValidationError('Request is no longer pending, cannot reject')
    db.session.commit()

    print(f"[perm] edit request {request_id} rejected by user={approver_id}")
    return {
        'request_id': request_id,
        'status': GrantStatus.REJECTED.value,
    }
