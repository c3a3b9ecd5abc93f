"""
Mutation gate — every resource write goes through here.

    create        elevated or editor roles
    update        elevated roles directly; editors need an active grant
    status change same rule as update
    delete        elevated roles only, whatever grants exist

Side effects are strictly ordered and committed separately:

    1. permission check (has_active_grant)
    2. consume the grant (editors only; conditional, committed)
    3. resource write (committed)
    4. audit write (committed)
    5. cache-invalidation signal

A failed resource write does not restore the consumed grant, and a failed
audit write does not undo the resource write. The pre-image is read before
the grant is consumed, so a missing record never burns a grant.
"""
from core.permissions.audit import record_audit_log
from core.permissions.constants import AuditAction
from core.permissions.errors import PermissionDenied, ValidationError
from core.permissions.grants import consume_edit_grant, has_active_grant
from core.permissions.identity import current_actor
from core.permissions.invalidation import notify_resource_changed
from core.resources import store
from core.resources.registry import RESOURCE_TYPES


def _check_type(resource_type):
    if resource_type not in RESOURCE_TYPES:
        raise ValidationError(f'Unknown resource type: {resource_type}')


def _commit_or_rollback(stage, resource_type, resource_id):
    from models import db

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        print(f"[gate] {stage} commit failed for {resource_type}/{resource_id}: {e}")
        raise


def _authorize_edit(actor, resource_type, resource_id):
    """Return the ActiveGrant attributing this edit, or raise PermissionDenied."""
    if not (actor.elevated or actor.editor):
        raise PermissionDenied('Access denied')

    grant = has_active_grant(resource_type, resource_id, actor.id, actor.role)
    if grant is None:
        raise PermissionDenied(
            f'You do not have permission to edit {resource_type} {resource_id}. '
            f'Request authorization first.'
        )
    return grant


def _audit_metadata(grant, resource_type, snapshot, method):
    return {
        'requestId': grant.request_id,
        'reason': grant.reason,
        'displayId': store.display_label(resource_type, snapshot),
        'method': method,
    }


def update_resource(resource_type, resource_id, patch, actor=None, method='update'):
    """Apply a partial update to a resource under the grant workflow.

    Args:
        resource_type: Resource kind, e.g. 'flights'.
        resource_id: Target record id.
        patch: dict of field -> new value.
        actor: The acting Actor; resolved from the session when omitted.
        method: Label stored in audit metadata.

    Returns:
        dict with resource (post-image), audit_id (None when nothing changed)
        and request_id (the grant identity or 'admin_direct').

    Raises:
        Unauthorized, PermissionDenied, NotFound, ValidationError.
    """
    from models import db

    actor = actor or current_actor()
    _check_type(resource_type)
    if not isinstance(patch, dict) or not patch:
        raise ValidationError('Nothing to update')

    grant = _authorize_edit(actor, resource_type, resource_id)
    before = store.read_resource(resource_type, resource_id)

    if not actor.elevated:
        if not consume_edit_grant(resource_type, resource_id, actor.id,
                                  grant_id=grant.grant_id):
            raise PermissionDenied('Edit permission was already used')

    try:
        after = store.write_resource(resource_type, resource_id, patch)
    except Exception:
        db.session.rollback()
        raise
    _commit_or_rollback('resource write', resource_type, resource_id)

    entry = record_audit_log(
        actor_id=actor.id,
        action=AuditAction.UPDATE,
        resource_type=resource_type,
        resource_id=resource_id,
        old_values=before,
        new_values=after,
        metadata=_audit_metadata(grant, resource_type, after, method),
    )
    _commit_or_rollback('audit write', resource_type, resource_id)

    notify_resource_changed(resource_type, resource_id)
    return {
        'resource': after,
        'audit_id': entry.id if entry is not None else None,
        'request_id': grant.request_id,
    }


def change_status(resource_type, resource_id, status, actor=None):
    """Inline status edit; gated exactly like update_resource."""
    if status is None or str(status).strip() == '':
        raise ValidationError('status is required')
    return update_resource(resource_type, resource_id, {'status': status},
                           actor=actor, method='status_change')


def create_resource(resource_type, values, actor=None):
    """Create a resource and record a create entry (no pre-image)."""
    from models import db

    actor = actor or current_actor()
    _check_type(resource_type)
    if not (actor.elevated or actor.editor):
        raise PermissionDenied('Access denied')

    try:
        created = store.create_resource(resource_type, values, agent_id=actor.id)
    except Exception:
        db.session.rollback()
        raise
    _commit_or_rollback('resource write', resource_type, created['id'])

    entry = record_audit_log(
        actor_id=actor.id,
        action=AuditAction.CREATE,
        resource_type=resource_type,
        resource_id=created['id'],
        new_values=created,
        metadata={
            'displayId': store.display_label(resource_type, created),
            'method': 'create',
        },
    )
    _commit_or_rollback('audit write', resource_type, created['id'])

    notify_resource_changed(resource_type, created['id'])
    return {
        'resource': created,
        'audit_id': entry.id if entry is not None else None,
    }


def delete_resource(resource_type, resource_id, actor=None):
    """Delete a resource. Elevated roles only; grants never authorise deletion."""
    from models import db

    actor = actor or current_actor()
    _check_type(resource_type)
    if not actor.elevated:
        raise PermissionDenied('Only administrators can delete records')

    grant = has_active_grant(resource_type, resource_id, actor.id, actor.role)

    try:
        removed = store.delete_resource(resource_type, resource_id)
    except Exception:
        db.session.rollback()
        raise
    _commit_or_rollback('resource delete', resource_type, resource_id)

    entry = record_audit_log(
        actor_id=actor.id,
        action=AuditAction.DELETE,
        resource_type=resource_type,
        resource_id=resource_id,
        old_values=removed,
        metadata=_audit_metadata(grant, resource_type, removed, 'delete'),
    )
    _commit_or_rollback('audit write', resource_type, resource_id)

    notify_resource_changed(resource_type, resource_id)
    return {
        'deleted': str(resource_id),
        'audit_id': entry.id if entry is not None else None,
    }
