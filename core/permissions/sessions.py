"""
Edit sessions — collapse physical audit writes into logical edits.

One approved grant can produce several audit entries (a form save followed
by an inline status change, say). For review, contiguous entries that share
a grant identity (``metadata.requestId``) on the same resource are merged
into one session whose diff runs from the oldest pre-image to the newest
post-image.

Entries attributed to ``admin_direct`` (or carrying no requestId) are never
merged, not even with an identical neighbour.

Itemised list fields (payment_details, expense_details) are reconciled
element by element: items pair up by position and are reported as added,
removed or modified, the latter with their own field diff.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Iterable

from core.permissions.constants import ADMIN_DIRECT_REQUEST_ID, BOOKKEEPING_KEYS
from core.permissions.normalizer import values_equal

ITEM_BOOKKEEPING_KEYS = frozenset({'id', 'created_at', 'updated_at'})


# ---------------------------------------------------------------------------
# Entry access (AuditLog rows or plain dicts)
# ---------------------------------------------------------------------------

def _get(entry, name):
    if isinstance(entry, Mapping):
        if name == 'metadata_json':
            return entry.get('metadata')
        return entry.get(name)
    return getattr(entry, name, None)


def request_id_of(entry) -> str | None:
    metadata = _get(entry, 'metadata_json') or {}
    request_id = metadata.get('requestId')
    return str(request_id) if request_id is not None else None


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class ItemChange:
    """One element-level change inside an itemised list field."""

    index: int
    kind: str  # 'added' | 'removed' | 'modified'
    old: Any = None
    new: Any = None
    changes: list[FieldChange] = field(default_factory=list)

    def to_dict(self):
        return {
            'index': self.index,
            'kind': self.kind,
            'old': self.old,
            'new': self.new,
            'changes': [c.to_dict() for c in self.changes],
        }


@dataclass
class FieldChange:
    key: str
    old: Any
    new: Any
    items: list[ItemChange] | None = None

    def to_dict(self):
        d = {'key': self.key, 'old': self.old, 'new': self.new}
        if self.items is not None:
            d['items'] = [item.to_dict() for item in self.items]
        return d


@dataclass
class EditSession:
    """A run of contiguous audit entries treated as one logical edit."""

    entries: list
    request_id: str | None
    resource_type: str | None
    resource_id: str | None
    old_values: dict | None
    new_values: dict | None

    @property
    def first(self):
        return self.entries[0]

    @property
    def last(self):
        return self.entries[-1]

    def absorb(self, entry):
        """Append an entry: keep the first pre-image, take the latest post-image."""
        self.entries.append(entry)
        self.new_values = _get(entry, 'new_values')

    def to_dict(self, changes=None):
        first_meta = _get(self.first, 'metadata_json') or {}
        started = _get(self.first, 'created_at')
        ended = _get(self.last, 'created_at')
        d = {
            'request_id': self.request_id,
            'resource_type': self.resource_type,
            'resource_id': self.resource_id,
            'actor_id': _get(self.first, 'actor_id'),
            'action': _get(self.first, 'action'),
            'reason': first_meta.get('reason'),
            'display_id': first_meta.get('displayId'),
            'entry_ids': [_get(e, 'id') for e in self.entries],
            'started_at': started.isoformat() if hasattr(started, 'isoformat') else started,
            'ended_at': ended.isoformat() if hasattr(ended, 'isoformat') else ended,
        }
        if changes is not None:
            d['changes'] = [c.to_dict() for c in changes]
        return d


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------

def _start_session(entry):
    return EditSession(
        entries=[entry],
        request_id=request_id_of(entry),
        resource_type=_get(entry, 'resource_type'),
        resource_id=str(_get(entry, 'resource_id')),
        old_values=_get(entry, 'old_values'),
        new_values=_get(entry, 'new_values'),
    )


def _continues(session, entry):
    request_id = request_id_of(entry)
    if request_id is None or request_id == ADMIN_DIRECT_REQUEST_ID:
        return False
    last = session.last
    return (request_id_of(last) == request_id
            and str(_get(last, 'resource_id')) == str(_get(entry, 'resource_id'))
            and _get(last, 'resource_type') == _get(entry, 'resource_type'))


def group_sessions(entries: Iterable) -> list[EditSession]:
    """Group chronologically ordered audit entries into edit sessions."""
    sessions = []
    current = None
    for entry in entries:
        if current is not None and _continues(current, entry):
            current.absorb(entry)
            continue
        current = _start_session(entry)
        sessions.append(current)
    return sessions


# ---------------------------------------------------------------------------
# Diffing
# ---------------------------------------------------------------------------

def _is_item_list(value):
    return isinstance(value, list) and all(isinstance(i, Mapping) for i in value)


def _itemised(old, new):
    """Both sides are item lists, or one is an item list and the other None."""
    if old is None:
        return _is_item_list(new)
    if new is None:
        return _is_item_list(old)
    return _is_item_list(old) and _is_item_list(new)


def _item_fields(old, new, exclude):
    keys = [k for k in new if k not in exclude]
    keys += [k for k in old if k not in exclude and k not in new]
    return [
        FieldChange(key, old.get(key), new.get(key))
        for key in keys
        if not values_equal(old.get(key), new.get(key))
    ]


def diff_items(old_items, new_items, exclude=ITEM_BOOKKEEPING_KEYS) -> list[ItemChange]:
    """Positional reconciliation of two item lists."""
    old_items = old_items or []
    new_items = new_items or []
    result = []
    for index in range(max(len(old_items), len(new_items))):
        if index >= len(old_items):
            result.append(ItemChange(index, 'added', new=new_items[index]))
            continue
        if index >= len(new_items):
            result.append(ItemChange(index, 'removed', old=old_items[index]))
            continue

        old, new = old_items[index], new_items[index]
        if isinstance(old, Mapping) and isinstance(new, Mapping):
            changes = _item_fields(old, new, set(exclude))
            if changes:
                result.append(ItemChange(index, 'modified', old, new, changes))
        elif not values_equal(old, new):
            result.append(ItemChange(index, 'modified', old, new))
    return result


def diff_values(old_values, new_values, field_order=None,
                exclude=BOOKKEEPING_KEYS) -> list[FieldChange]:
    """Ordered field-level diff of two snapshots.

    Only keys present in ``new_values`` are considered. Changed keys named in
    ``field_order`` come first, in that order; the rest follow in the
    insertion order of ``new_values``.
    """
    old_values = old_values or {}
    new_values = new_values or {}
    excluded = set(exclude)

    changed = [
        key for key in new_values
        if key not in excluded
        and not values_equal(old_values.get(key), new_values[key])
    ]

    order = [key for key in (field_order or []) if key in changed]
    order += [key for key in changed if key not in order]

    result = []
    for key in order:
        old, new = old_values.get(key), new_values[key]
        items = diff_items(old, new) if _itemised(old, new) else None
        result.append(FieldChange(key, old, new, items))
    return result


def diff_session(session: EditSession, field_order=None,
                 exclude=BOOKKEEPING_KEYS) -> list[FieldChange]:
    """Net diff of a session: first pre-image against last post-image."""
    return diff_values(session.old_values, session.new_values,
                       field_order=field_order, exclude=exclude)


def get_edit_sessions(resource_type, resource_id, field_order=None,
                      exclude=BOOKKEEPING_KEYS):
    """Sessions for one resource, newest first, each with its diff."""
    from core.permissions.audit import get_resource_history
    from core.resources.registry import get_field_order

    if field_order is None:
        field_order = get_field_order(resource_type)

    sessions = group_sessions(get_resource_history(resource_type, resource_id))
    return [
        session.to_dict(diff_session(session, field_order, exclude))
        for session in reversed(sessions)
    ]
