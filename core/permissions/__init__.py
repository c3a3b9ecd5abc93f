"""
core.permissions — Edit-permission and audit-trail engine.

Gates who may mutate a shared business record and reconstructs, after the
fact, what changed, by whom and under which authorisation.

Public API:
    submit_edit_request                         — agent asks to edit a record
    approve_edit_request, reject_edit_request   — approver decision
    has_active_grant, consume_edit_grant        — single-use grants
    get_active_permissions                      — records an agent may edit now
    update_resource, change_status,
    create_resource, delete_resource            — mutation gate
    record_audit_log, get_audit_logs,
    get_resource_history                        — audit trail
    group_sessions, diff_session, get_edit_sessions — edit-session diffs
    normalize, values_equal, changed_keys       — change detection
"""

from core.permissions.requests import (
    submit_edit_request,
    get_edit_request,
    get_pending_edit_requests,
    get_all_edit_requests,
    count_pending_edit_requests,
)
from core.permissions.approvals import (
    approve_edit_request,
    reject_edit_request,
)
from core.permissions.grants import (
    ActiveGrant,
    has_active_grant,
    consume_edit_grant,
    get_active_permissions,
)
from core.permissions.gate import (
    update_resource,
    change_status,
    create_resource,
    delete_resource,
)
from core.permissions.audit import (
    record_audit_log,
    get_audit_logs,
    get_resource_history,
)
from core.permissions.sessions import (
    EditSession,
    FieldChange,
    ItemChange,
    group_sessions,
    diff_session,
    diff_values,
    diff_items,
    get_edit_sessions,
)
from core.permissions.normalizer import (
    normalize,
    canonical,
    values_equal,
    changed_keys,
)
from core.permissions.identity import Actor, current_actor, get_actor
from core.permissions.invalidation import resource_changed

__all__ = [
    'submit_edit_request',
    'get_edit_request',
    'get_pending_edit_requests',
    'get_all_edit_requests',
    'count_pending_edit_requests',
    'approve_edit_request',
    'reject_edit_request',
    'ActiveGrant',
    'has_active_grant',
    'consume_edit_grant',
    'get_active_permissions',
    'update_resource',
    'change_status',
    'create_resource',
    'delete_resource',
    'record_audit_log',
    'get_audit_logs',
    'get_resource_history',
    'EditSession',
    'FieldChange',
    'ItemChange',
    'group_sessions',
    'diff_session',
    'diff_values',
    'diff_items',
    'get_edit_sessions',
    'normalize',
    'canonical',
    'values_equal',
    'changed_keys',
    'Actor',
    'current_actor',
    'get_actor',
    'resource_changed',
]
