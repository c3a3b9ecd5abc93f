"""
SQL-backed resource storage.

The permission engine treats every business record as an opaque field map.
This module is the only place that knows how those maps are persisted:

    read_resource(type, id)           -> snapshot dict     (NotFound)
    write_resource(type, id, patch)   -> snapshot dict     (NotFound, ValidationError)
    create_resource(type, values)     -> snapshot dict     (ValidationError)
    delete_resource(type, id)         -> snapshot dict of the removed row

Snapshots are JSON-safe: dates become ISO strings and Decimals become
strings, so they can be stored verbatim in audit_logs.

Writes are flushed but not committed; the caller owns the transaction.
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from core.permissions.errors import NotFound, ValidationError
from core.resources.registry import get_model


def serialize_value(value):
    """Convert a column value into its JSON-safe snapshot form."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def _require_model(resource_type):
    model = get_model(resource_type)
    if model is None:
        raise ValidationError(f'Unknown resource type: {resource_type}')
    return model


def _load(resource_type, resource_id):
    model = _require_model(resource_type)
    try:
        pk = int(resource_id)
    except (TypeError, ValueError):
        raise NotFound(f'{resource_type} {resource_id} not found')

    from models import db

    record = db.session.get(model, pk)
    if record is None:
        raise NotFound(f'{resource_type} {resource_id} not found')
    return record


def _coerce(model, field, value):
    """Coerce an incoming form/JSON value to the column's Python type."""
    column = model.__table__.columns[field]
    if value is None or value == '':
        return None if column.nullable else value

    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value

    if python_type is Decimal:
        try:
            number = Decimal(str(value))
            scale = getattr(column.type, 'scale', None)
            if scale is not None:
                number = number.quantize(Decimal(1).scaleb(-scale))
            return number
        except InvalidOperation:
            raise ValidationError(f'{field} must be numeric, got {value!r}')
    if python_type is date and isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            raise ValidationError(f'{field} must be an ISO date, got {value!r}')
    if python_type is int and not isinstance(value, bool):
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValidationError(f'{field} must be an integer, got {value!r}')
    return value


def _apply(model, record, values):
    if not isinstance(values, dict):
        raise ValidationError('Resource values must be an object')

    unknown = sorted(set(values) - set(model.EDITABLE_FIELDS))
    if unknown:
        raise ValidationError(f'Fields not editable: {", ".join(unknown)}')

    for field, value in values.items():
        setattr(record, field, _coerce(model, field, value))


def read_resource(resource_type, resource_id):
    """Return the current snapshot of a record."""
    return _load(resource_type, resource_id).to_dict()


def write_resource(resource_type, resource_id, patch):
    """Apply a partial update and return the post-image."""
    from models import db

    record = _load(resource_type, resource_id)
    _apply(type(record), record, patch)
    record.updated_at = datetime.utcnow()
    db.session.flush()
    return record.to_dict()


def create_resource(resource_type, values, agent_id=None):
    """Insert a new record and return its snapshot."""
    from models import db

    model = _require_model(resource_type)
    record = model(agent_id=agent_id)
    _apply(model, record, values)
    db.session.add(record)
    db.session.flush()
    return record.to_dict()


def delete_resource(resource_type, resource_id):
    """Delete a record, returning the snapshot it had."""
    from models import db

    record = _load(resource_type, resource_id)
    snapshot = record.to_dict()
    db.session.delete(record)
    db.session.flush()
    return snapshot


def display_label(resource_type, snapshot):
    """Human label for a record (PNR, transfer code, tracking code)."""
    model = get_model(resource_type)
    if model is None or not snapshot:
        return None
    label = snapshot.get(model.DISPLAY_FIELD) if model.DISPLAY_FIELD else None
    if label:
        return str(label)
    if snapshot.get('id') is not None:
        return str(snapshot['id'])
    return None
