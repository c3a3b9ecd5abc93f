"""
Database models for the back-office edit-permission and audit engine
"""
from datetime import datetime, timedelta

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import declared_attr

db = SQLAlchemy()


USER_ROLES = frozenset({'admin', 'supervisor', 'agent', 'usuario', 'client'})
EDIT_REQUEST_STATUSES = frozenset({'pending', 'approved', 'rejected'})
AUDIT_ACTIONS = frozenset({'create', 'update', 'delete', 'approve_edit', 'reject_edit'})


class User(db.Model):
    """Staff or client profile. The role drives every permission decision."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    first_name = db.Column(db.String(100))
    last_name = db.Column(db.String(100))

    # 'admin', 'supervisor', 'agent', 'usuario' or 'client'
    role = db.Column(db.String(20), default='client', nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    last_login = db.Column(db.DateTime)

    def __repr__(self):
        return f'<User {self.email} ({self.role})>'

    @property
    def full_name(self):
        parts = [p for p in (self.first_name, self.last_name) if p]
        return ' '.join(parts) or self.email

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'role': self.role,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


# ============================================
# Edit permission workflow
# ============================================

class EditRequest(db.Model):
    """An agent's request to edit one resource instance.

    Lifecycle: pending -> approved | rejected. An approved grant is consumed
    by stamping expires_at; it is usable only while expires_at is NULL or in
    the future. At most one pending row may exist per (resource_type,
    resource_id), enforced by a partial unique index.
    """
    __tablename__ = 'edit_requests'
    __table_args__ = (
        db.Index(
            'uq_edit_requests_one_pending',
            'resource_type', 'resource_id',
            unique=True,
            sqlite_where=db.text("status = 'pending'"),
            postgresql_where=db.text("status = 'pending'"),
        ),
        db.Index('ix_edit_requests_grant_lookup',
                 'agent_id', 'resource_type', 'resource_id', 'status'),
    )

    VALID_STATUSES = EDIT_REQUEST_STATUSES

    id = db.Column(db.Integer, primary_key=True)
    agent_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    resource_type = db.Column(db.String(50), nullable=False)
    resource_id = db.Column(db.String(64), nullable=False)
    reason = db.Column(db.Text, nullable=False, default='')
    status = db.Column(db.String(20), nullable=False, default='pending', index=True)

    admin_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    approved_at = db.Column(db.DateTime)
    expires_at = db.Column(db.DateTime)

    # {displayId, draft, ...}
    metadata_json = db.Column('metadata', db.JSON, default=dict)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    agent = db.relationship('User', foreign_keys=[agent_id])
    admin = db.relationship('User', foreign_keys=[admin_id])

    def __repr__(self):
        return f'<EditRequest {self.id} {self.resource_type}/{self.resource_id} {self.status}>'

    def is_usable(self, now=None, ttl_minutes=None):
        """True while the grant is approved and neither consumed nor past its TTL."""
        now = now or datetime.utcnow()
        if self.status != 'approved':
            return False
        if self.expires_at is not None and self.expires_at <= now:
            return False
        if ttl_minutes and self.approved_at is not None:
            if self.approved_at + timedelta(minutes=ttl_minutes) <= now:
                return False
        return True

    def to_dict(self):
        from core.permissions.grants import grant_ttl_minutes

        return {
            'id': self.id,
            'agent_id': self.agent_id,
            'resource_type': self.resource_type,
            'resource_id': self.resource_id,
            'reason': self.reason,
            'status': self.status,
            'admin_id': self.admin_id,
            'approved_at': self.approved_at.isoformat() if self.approved_at else None,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
            'metadata': self.metadata_json or {},
            'is_active': self.is_usable(ttl_minutes=grant_ttl_minutes()),
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'agent': {
                'first_name': self.agent.first_name,
                'last_name': self.agent.last_name,
                'email': self.agent.email,
            } if self.agent else None,
        }


class AuditLog(db.Model):
    """Append-only record of one mutation. Rows are never updated or deleted.

    The integer primary key doubles as a monotonic sequence so entries with
    equal created_at still have a total order within a resource.
    """
    __tablename__ = 'audit_logs'
    __table_args__ = (
        db.Index('ix_audit_logs_resource', 'resource_type', 'resource_id', 'created_at'),
        db.Index('ix_audit_logs_actor', 'actor_id'),
        db.Index('ix_audit_logs_created_at', 'created_at'),
    )

    VALID_ACTIONS = AUDIT_ACTIONS

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    actor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    action = db.Column(db.String(20), nullable=False, index=True)
    resource_type = db.Column(db.String(50), nullable=False)
    resource_id = db.Column(db.String(64), nullable=False)
    old_values = db.Column(db.JSON)
    new_values = db.Column(db.JSON)
    # {requestId, reason, displayId, changed_keys, method}
    metadata_json = db.Column('metadata', db.JSON, default=dict)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    actor = db.relationship('User', foreign_keys=[actor_id])

    def __repr__(self):
        return f'<AuditLog {self.id} {self.action} {self.resource_type}/{self.resource_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'actor_id': self.actor_id,
            'action': self.action,
            'resource_type': self.resource_type,
            'resource_id': self.resource_id,
            'old_values': self.old_values,
            'new_values': self.new_values,
            'metadata': self.metadata_json or {},
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'actor': {
                'first_name': self.actor.first_name,
                'last_name': self.actor.last_name,
                'email': self.actor.email,
            } if self.actor else None,
        }


# ============================================
# Business resources
# ============================================

class ResourceMixin:
    """Columns and serialisation shared by every business record."""

    # Columns a caller may write through the resource store.
    EDITABLE_FIELDS = frozenset()
    # Column holding the human label shown in audit screens.
    DISPLAY_FIELD = None

    id = db.Column(db.Integer, primary_key=True)
    status = db.Column(db.String(50), default='pending')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @declared_attr
    def agent_id(cls):
        return db.Column(db.Integer, db.ForeignKey('users.id'))

    def to_dict(self):
        from core.resources.store import serialize_value

        return {
            column.name: serialize_value(getattr(self, column.key))
            for column in self.__table__.columns
        }


class Flight(ResourceMixin, db.Model):
    __tablename__ = 'flights'

    EDITABLE_FIELDS = frozenset({
        'status', 'cost', 'sold_price', 'itinerary', 'travel_date',
        'return_date', 'pnr', 'on_account', 'balance', 'payment_details',
    })
    DISPLAY_FIELD = 'pnr'

    pnr = db.Column(db.String(20), index=True)
    itinerary = db.Column(db.String(255))
    travel_date = db.Column(db.Date)
    return_date = db.Column(db.Date)
    cost = db.Column(db.Numeric(12, 2), default=0)
    sold_price = db.Column(db.Numeric(12, 2), default=0)
    on_account = db.Column(db.Numeric(12, 2), default=0)
    balance = db.Column(db.Numeric(12, 2), default=0)
    payment_details = db.Column(db.JSON, default=list)


class MoneyTransfer(ResourceMixin, db.Model):
    __tablename__ = 'money_transfers'

    EDITABLE_FIELDS = frozenset({
        'status', 'amount_sent', 'amount_received', 'exchange_rate',
        'beneficiary_name', 'transfer_code', 'payment_details',
    })
    DISPLAY_FIELD = 'transfer_code'

    transfer_code = db.Column(db.String(30), index=True)
    beneficiary_name = db.Column(db.String(255))
    amount_sent = db.Column(db.Numeric(12, 2), default=0)
    amount_received = db.Column(db.Numeric(12, 2), default=0)
    exchange_rate = db.Column(db.Numeric(12, 4), default=1)
    payment_details = db.Column(db.JSON, default=list)


class Parcel(ResourceMixin, db.Model):
    __tablename__ = 'parcels'

    EDITABLE_FIELDS = frozenset({
        'status', 'tracking_code', 'recipient_name', 'recipient_phone',
        'recipient_address', 'origin_address', 'destination_address',
        'package_type', 'package_weight', 'package_description',
        'shipping_cost', 'payment_details',
    })
    DISPLAY_FIELD = 'tracking_code'

    tracking_code = db.Column(db.String(30), index=True)
    recipient_name = db.Column(db.String(255))
    recipient_phone = db.Column(db.String(50))
    recipient_address = db.Column(db.String(255))
    origin_address = db.Column(db.String(255))
    destination_address = db.Column(db.String(255))
    package_type = db.Column(db.String(50))
    package_weight = db.Column(db.Numeric(10, 2), default=0)
    package_description = db.Column(db.Text)
    shipping_cost = db.Column(db.Numeric(12, 2), default=0)
    payment_details = db.Column(db.JSON, default=list)


class Translation(ResourceMixin, db.Model):
    __tablename__ = 'translations'

    EDITABLE_FIELDS = frozenset({
        'status', 'tracking_code', 'document_type', 'source_language',
        'target_language', 'total_amount', 'on_account', 'balance',
        'payment_details',
    })
    DISPLAY_FIELD = 'tracking_code'

    tracking_code = db.Column(db.String(30), index=True)
    document_type = db.Column(db.String(100))
    source_language = db.Column(db.String(20))
    target_language = db.Column(db.String(20))
    total_amount = db.Column(db.Numeric(12, 2), default=0)
    on_account = db.Column(db.Numeric(12, 2), default=0)
    balance = db.Column(db.Numeric(12, 2), default=0)
    payment_details = db.Column(db.JSON, default=list)


class OtherService(ResourceMixin, db.Model):
    __tablename__ = 'other_services'

    EDITABLE_FIELDS = frozenset({
        'status', 'tracking_code', 'service_description', 'total_amount',
        'on_account', 'balance', 'payment_details', 'expense_details',
    })
    DISPLAY_FIELD = 'tracking_code'

    tracking_code = db.Column(db.String(30), index=True)
    service_description = db.Column(db.Text)
    total_amount = db.Column(db.Numeric(12, 2), default=0)
    on_account = db.Column(db.Numeric(12, 2), default=0)
    balance = db.Column(db.Numeric(12, 2), default=0)
    payment_details = db.Column(db.JSON, default=list)
    expense_details = db.Column(db.JSON, default=list)
