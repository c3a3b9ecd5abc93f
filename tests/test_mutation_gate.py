"""
Tests for the mutation gate: authorisation, grant consumption, side-effect
ordering, deletion rules and the cache-invalidation signal.
"""
import pytest
from decimal import Decimal
from unittest.mock import patch

from models import db, AuditLog, EditRequest, Flight
from core.permissions import (
    approve_edit_request,
    change_status,
    create_resource,
    delete_resource,
    get_edit_sessions,
    consume_edit_grant,
    has_active_grant,
    resource_changed,
    submit_edit_request,
    update_resource,
)
from core.permissions.errors import NotFound, PermissionDenied, Unauthorized, ValidationError


@pytest.mark.gate
class TestUpdateAuthorisation:

    def test_agent_without_grant_is_denied(self, app, flight, agent_user, actor_for):
        with pytest.raises(PermissionDenied):
            update_resource('flights', 42, {'cost': '110'}, actor=actor_for(agent_user))
        assert str(db.session.get(Flight, 42).cost) == '100.00'
        assert AuditLog.query.count() == 0

    def test_client_is_denied_even_with_grant_row(self, app, flight, client_user, actor_for):
        db.session.add(EditRequest(agent_id=client_user.id, resource_type='flights',
                                   resource_id='42', reason='x', status='approved'))
        db.session.commit()
        with pytest.raises(PermissionDenied):
            update_resource('flights', 42, {'cost': '1'}, actor=actor_for(client_user))

    def test_agent_with_grant_updates_and_consumes(self, app, approved_grant,
                                                   agent_user, actor_for):
        result = update_resource('flights', 42, {'cost': '110.00'},
                                 actor=actor_for(agent_user))

        assert result['resource']['cost'] == '110.00'
        assert result['request_id'] == str(approved_grant.id)
        assert result['audit_id'] is not None

        db.session.refresh(approved_grant)
        assert approved_grant.expires_at is not None
        assert has_active_grant('flights', 42, agent_user.id, 'agent') is None

    def test_admin_edits_directly(self, app, flight, admin_user, actor_for):
        result = update_resource('flights', 42, {'itinerary': 'HAV-MAD'},
                                 actor=actor_for(admin_user))

        assert result['request_id'] == 'admin_direct'
        entry = db.session.get(AuditLog, result['audit_id'])
        assert entry.actor_id == admin_user.id
        assert entry.metadata_json['requestId'] == 'admin_direct'
        assert entry.metadata_json['reason'] == 'Direct Edit'
        assert entry.metadata_json['displayId'] == 'ABC123'
        assert entry.metadata_json['method'] == 'update'

    def test_admin_does_not_consume_agent_grant(self, app, approved_grant,
                                                admin_user, agent_user, actor_for):
        update_resource('flights', 42, {'itinerary': 'HAV-MAD'},
                        actor=actor_for(admin_user))
        assert has_active_grant('flights', 42, agent_user.id, 'agent') is not None

    def test_unknown_type(self, app, admin_user, actor_for):
        with pytest.raises(ValidationError):
            update_resource('spaceships', 1, {'a': 1}, actor=actor_for(admin_user))

    def test_empty_patch(self, app, flight, admin_user, actor_for):
        with pytest.raises(ValidationError):
            update_resource('flights', 42, {}, actor=actor_for(admin_user))

    def test_no_actor_outside_request(self, app, flight):
        with pytest.raises(Unauthorized):
            update_resource('flights', 42, {'cost': 1})


@pytest.mark.gate
class TestSideEffectOrdering:

    def test_missing_resource_does_not_burn_grant(self, app, agent_user, admin_user, actor_for):
        er = submit_edit_request('flights', 999, agent_user.id, 'x')
        approve_edit_request(er.id, admin_user.id)

        with pytest.raises(NotFound):
            update_resource('flights', 999, {'cost': 1}, actor=actor_for(agent_user))
        assert has_active_grant('flights', 999, agent_user.id, 'agent') is not None

    def test_failed_write_keeps_grant_consumed(self, app, approved_grant,
                                               agent_user, actor_for):
        with pytest.raises(ValidationError):
            update_resource('flights', 42, {'not_a_column': 1},
                            actor=actor_for(agent_user))

        assert str(db.session.get(Flight, 42).cost) == '100.00'
        assert AuditLog.query.count() == 0
        assert has_active_grant('flights', 42, agent_user.id, 'agent') is None

    def test_failed_audit_keeps_resource_write(self, app, approved_grant,
                                               agent_user, actor_for):
        with patch('core.permissions.gate.record_audit_log',
                   side_effect=RuntimeError('audit store down')):
            with pytest.raises(RuntimeError):
                update_resource('flights', 42, {'cost': '130'},
                                actor=actor_for(agent_user))

        assert str(db.session.get(Flight, 42).cost) == '130.00'
        assert AuditLog.query.count() == 0

    def test_lost_race_on_consume_is_denied(self, app, approved_grant,
                                            agent_user, actor_for):
        checked = has_active_grant('flights', 42, agent_user.id, 'agent')

        def check_then_lose_race(*args, **kwargs):
            # A concurrent edit spends the grant right after this check passed.
            assert consume_edit_grant('flights', 42, agent_user.id) == 1
            return checked

        with patch('core.permissions.gate.has_active_grant',
                   side_effect=check_then_lose_race):
            with pytest.raises(PermissionDenied, match='already used'):
                update_resource('flights', 42, {'cost': '130'},
                                actor=actor_for(agent_user))

        db.session.expire_all()
        assert str(db.session.get(Flight, 42).cost) == '100.00'
        assert AuditLog.query.count() == 0
        assert has_active_grant('flights', 42, agent_user.id, 'agent') is None

    def test_reapplied_change_after_draft_revert_is_audited(self, app, flight, admin_user,
                                                            agent_user, actor_for):
        admin = actor_for(admin_user)
        assert update_resource('flights', 42, {'cost': '120'}, actor=admin)['audit_id']

        er = submit_edit_request('flights', 42, agent_user.id, 'revert price',
                                 metadata={'draft': {'cost': '100'}})
        approve_edit_request(er.id, admin_user.id)
        assert str(db.session.get(Flight, 42).cost) == '100.00'

        result = update_resource('flights', 42, {'cost': '120'}, actor=admin)

        assert result['audit_id'] is not None
        history = AuditLog.query.order_by(AuditLog.id).all()
        assert [(e.action, e.new_values['cost']) for e in history] == [
            ('update', '120.00'), ('approve_edit', '100.00'), ('update', '120.00')]

    def test_no_op_update_writes_no_audit(self, app, flight, admin_user, actor_for):
        result = update_resource('flights', 42, {'cost': '100', 'status': 'pending'},
                                 actor=actor_for(admin_user))
        assert result['audit_id'] is None
        assert AuditLog.query.count() == 0


@pytest.mark.gate
class TestStatusChange:

    def test_status_change_is_gated(self, app, flight, agent_user, actor_for):
        with pytest.raises(PermissionDenied):
            change_status('flights', 42, 'confirmed', actor=actor_for(agent_user))

    def test_status_change_with_grant(self, app, approved_grant, agent_user, actor_for):
        result = change_status('flights', 42, 'confirmed', actor=actor_for(agent_user))

        entry = db.session.get(AuditLog, result['audit_id'])
        assert entry.metadata_json['method'] == 'status_change'
        assert entry.metadata_json['changed_keys'] == ['status']
        assert db.session.get(Flight, 42).status == 'confirmed'

    def test_status_required(self, app, flight, admin_user, actor_for):
        with pytest.raises(ValidationError):
            change_status('flights', 42, '  ', actor=actor_for(admin_user))


@pytest.mark.gate
class TestCreateDelete:

    def test_agent_may_create(self, app, agent_user, actor_for):
        result = create_resource('parcels', {'tracking_code': 'PK-1',
                                             'shipping_cost': '12.5'},
                                 actor=actor_for(agent_user))

        created = result['resource']
        assert created['tracking_code'] == 'PK-1'
        assert created['shipping_cost'] == '12.50'
        assert created['agent_id'] == agent_user.id

        entry = db.session.get(AuditLog, result['audit_id'])
        assert entry.action == 'create'
        assert entry.old_values is None
        assert entry.metadata_json['displayId'] == 'PK-1'

    def test_client_may_not_create(self, app, client_user, actor_for):
        with pytest.raises(PermissionDenied):
            create_resource('parcels', {'tracking_code': 'PK-1'},
                            actor=actor_for(client_user))

    def test_agent_with_grant_still_cannot_delete(self, app, approved_grant,
                                                  agent_user, actor_for):
        with pytest.raises(PermissionDenied):
            delete_resource('flights', 42, actor=actor_for(agent_user))

        assert db.session.get(Flight, 42) is not None
        assert has_active_grant('flights', 42, agent_user.id, 'agent') is not None

    def test_supervisor_deletes(self, app, flight, supervisor_user, actor_for):
        result = delete_resource('flights', 42, actor=actor_for(supervisor_user))

        assert result['deleted'] == '42'
        assert db.session.get(Flight, 42) is None
        entry = db.session.get(AuditLog, result['audit_id'])
        assert entry.action == 'delete'
        assert entry.old_values['pnr'] == 'ABC123'
        assert entry.new_values is None
        assert entry.metadata_json['requestId'] == 'admin_direct'

    def test_delete_missing(self, app, admin_user, actor_for):
        with pytest.raises(NotFound):
            delete_resource('flights', 5, actor=actor_for(admin_user))


@pytest.mark.gate
class TestInvalidationSignal:

    def test_signal_sent_with_ui_path(self, app, flight, admin_user, actor_for):
        received = []

        def receiver(sender, **kwargs):
            received.append((sender, kwargs))

        resource_changed.connect(receiver)
        try:
            update_resource('flights', 42, {'pnr': 'XYZ999'}, actor=actor_for(admin_user))
        finally:
            resource_changed.disconnect(receiver)

        assert received == [('flights', {'resource_id': '42', 'path': '/chimi-vuelos'})]

    def test_receiver_failure_does_not_fail_mutation(self, app, flight, admin_user, actor_for):
        def broken(sender, **kwargs):
            raise RuntimeError('cache down')

        resource_changed.connect(broken)
        try:
            result = update_resource('flights', 42, {'pnr': 'XYZ999'},
                                     actor=actor_for(admin_user))
        finally:
            resource_changed.disconnect(broken)

        assert result['resource']['pnr'] == 'XYZ999'


@pytest.mark.gate
class TestEndToEnd:

    def test_price_correction_scenario(self, app, flight, agent_user, admin_user, actor_for):
        agent = actor_for(agent_user)

        er = submit_edit_request('flights', 42, agent_user.id, 'price correction')
        approve_edit_request(er.id, admin_user.id)

        update_resource('flights', 42, {'cost': '110.00', 'status': 'pending'}, actor=agent)

        sessions = get_edit_sessions('flights', 42)
        assert len(sessions) == 1
        assert sessions[0]['request_id'] == str(er.id)
        assert sessions[0]['reason'] == 'price correction'
        assert sessions[0]['changes'] == [
            {'key': 'cost', 'old': '100.00', 'new': '110.00'},
        ]

        with pytest.raises(PermissionDenied):
            update_resource('flights', 42, {'cost': '120.00'}, actor=agent)
        assert db.session.get(Flight, 42).cost == Decimal('110.00')
