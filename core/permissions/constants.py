"""
Closed vocabularies for the edit-permission engine.

Statuses, actions and roles are str-valued enums so they compare equal to
the strings stored in the database and serialised to JSON.
"""
from enum import Enum


class GrantStatus(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'


class AuditAction(str, Enum):
    CREATE = 'create'
    UPDATE = 'update'
    DELETE = 'delete'
    APPROVE_EDIT = 'approve_edit'
    REJECT_EDIT = 'reject_edit'


class Role(str, Enum):
    ADMIN = 'admin'
    SUPERVISOR = 'supervisor'
    AGENT = 'agent'
    USUARIO = 'usuario'
    CLIENT = 'client'


# Bypass the grant workflow, still attributed in the audit trail.
ELEVATED_ROLES = frozenset({Role.ADMIN, Role.SUPERVISOR})

# May request grants and mutate resources while holding one.
EDITOR_ROLES = frozenset({Role.AGENT, Role.USUARIO})

# Sentinel request identity for mutations made without a grant. Never grouped.
ADMIN_DIRECT_REQUEST_ID = 'admin_direct'
ADMIN_DIRECT_REASON = 'Direct Edit'

# Keys never reported as changed.
TIMESTAMP_KEYS = frozenset({'updated_at'})
BOOKKEEPING_KEYS = frozenset({'updated_at', 'id', 'agent_id', 'created_at'})

# Metadata key on an EditRequest carrying a staged patch.
DRAFT_METADATA_KEY = 'draft'

DEFAULT_GRANT_TTL_MINUTES = 60
DEFAULT_AUDIT_DEDUP_SECONDS = 5


def coerce_role(value):
    """Return the Role for a stored role string, or None if unrecognised."""
    try:
        return Role(value)
    except ValueError:
        return None


def is_elevated(role):
    return coerce_role(role) in ELEVATED_ROLES


def is_editor(role):
    return coerce_role(role) in EDITOR_ROLES
