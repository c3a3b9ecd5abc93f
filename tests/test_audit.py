"""
Tests for the audit recorder and the audit feed.
"""
import pytest
from datetime import datetime, timedelta

from models import db, AuditLog
from core.permissions import get_audit_logs, get_resource_history, record_audit_log
from core.permissions.errors import ValidationError


def _record(actor_id, old, new, resource_id='42', action='update', **metadata):
    entry = record_audit_log(actor_id, action, 'flights', resource_id,
                             old_values=old, new_values=new,
                             metadata=metadata or None)
    db.session.commit()
    return entry


@pytest.mark.audit
class TestRecordAuditLog:

    def test_records_changed_keys_and_merged_post_image(self, app, admin_user):
        old = {'id': 42, 'cost': '100.00', 'status': 'pending', 'updated_at': 'a'}
        new = {'cost': '110', 'status': 'pending', 'updated_at': 'b'}

        entry = _record(admin_user.id, old, new, requestId='admin_direct')

        assert entry.id is not None
        assert entry.action == 'update'
        assert entry.resource_id == '42'
        assert entry.old_values == old
        assert entry.new_values == {'id': 42, 'cost': '110', 'status': 'pending',
                                    'updated_at': 'b'}
        assert entry.metadata_json['changed_keys'] == ['cost']
        assert entry.metadata_json['requestId'] == 'admin_direct'

    def test_update_without_changes_is_skipped(self, app, admin_user):
        entry = _record(admin_user.id, {'cost': '100.00', 'updated_at': 'a'},
                        {'cost': 100, 'updated_at': 'b'})
        assert entry is None
        assert AuditLog.query.count() == 0

    def test_create_has_no_pre_image(self, app, admin_user):
        entry = _record(admin_user.id, None, {'cost': '1', 'updated_at': 'x'},
                        action='create')
        assert entry.old_values is None
        assert entry.metadata_json['changed_keys'] == ['cost']

    def test_delete_has_no_post_image(self, app, admin_user):
        entry = _record(admin_user.id, {'cost': '1'}, None, action='delete')
        assert entry.new_values is None
        assert entry.metadata_json['changed_keys'] == []

    def test_unknown_action_rejected(self, app, admin_user):
        with pytest.raises(ValidationError):
            record_audit_log(admin_user.id, 'explode', 'flights', 42)

    def test_identical_write_within_window_is_suppressed(self, app, admin_user):
        first = _record(admin_user.id, {'cost': '100'}, {'cost': '110'})
        second = _record(admin_user.id, {'cost': '100'}, {'cost': '110.00'})

        assert first is not None
        assert second is None
        assert AuditLog.query.count() == 1

    def test_different_values_are_not_duplicates(self, app, admin_user):
        _record(admin_user.id, {'cost': '100'}, {'cost': '110'})
        _record(admin_user.id, {'cost': '110'}, {'cost': '120'})
        assert AuditLog.query.count() == 2

    def test_interleaved_action_does_not_hide_real_change(self, app, admin_user):
        """update -> approve_edit reverting it -> same update again."""
        first = _record(admin_user.id, {'cost': '100'}, {'cost': '120'})
        revert = _record(admin_user.id, {'cost': '120'}, {'cost': '100'},
                         action='approve_edit', requestId=7)
        again = _record(admin_user.id, {'cost': '100'}, {'cost': '120'})

        assert first is not None
        assert revert is not None
        assert again is not None
        assert [e.action for e in get_resource_history('flights', '42')] == [
            'update', 'approve_edit', 'update']

    def test_same_post_image_from_different_pre_image_is_kept(self, app, admin_user):
        _record(admin_user.id, {'cost': '100'}, {'cost': '120'})
        second = _record(admin_user.id, {'cost': '110'}, {'cost': '120'})

        assert second is not None
        assert AuditLog.query.count() == 2

    def test_writes_outside_window_are_kept(self, app, admin_user):
        first = _record(admin_user.id, {'cost': '100'}, {'cost': '110'})
        first.created_at = datetime.utcnow() - timedelta(seconds=30)
        db.session.commit()

        assert _record(admin_user.id, {'cost': '100'}, {'cost': '110'}) is not None
        assert AuditLog.query.count() == 2

    def test_dedup_can_be_disabled(self, app, admin_user):
        app.config['AUDIT_DEDUP_SECONDS'] = 0
        _record(admin_user.id, {'cost': '100'}, {'cost': '110'})
        _record(admin_user.id, {'cost': '100'}, {'cost': '110'})
        assert AuditLog.query.count() == 2


@pytest.mark.audit
class TestAuditQueries:

    def test_history_is_chronological_with_id_tiebreak(self, app, admin_user):
        app.config['AUDIT_DEDUP_SECONDS'] = 0
        stamp = datetime.utcnow()
        for cost in ('1', '2', '3'):
            entry = _record(admin_user.id, {'cost': '0'}, {'cost': cost})
            entry.created_at = stamp
        db.session.commit()
        _record(admin_user.id, {'cost': '0'}, {'cost': '9'}, resource_id='43')

        history = get_resource_history('flights', 42)
        assert [e.new_values['cost'] for e in history] == ['1', '2', '3']

    def test_feed_filters_and_pagination(self, app, admin_user, agent_user):
        app.config['AUDIT_DEDUP_SECONDS'] = 0
        _record(admin_user.id, {'cost': '0'}, {'cost': '1'}, displayId='ABC123')
        _record(agent_user.id, {'cost': '1'}, {'cost': '2'}, displayId='ABC123')
        _record(agent_user.id, None, {'pnr': 'ZZZ'}, resource_id='43',
                action='create', displayId='ZZZ900')

        entries, total = get_audit_logs()
        assert total == 3
        assert entries[0].resource_id == '43'

        entries, total = get_audit_logs(actor_id=agent_user.id)
        assert total == 2

        entries, total = get_audit_logs(action='create')
        assert [e.resource_id for e in entries] == ['43']

        entries, total = get_audit_logs(resource_id=42)
        assert total == 2

        entries, total = get_audit_logs(display_id='abc')
        assert total == 2

        entries, total = get_audit_logs(page=2, limit=2)
        assert total == 3
        assert len(entries) == 1

    def test_feed_date_range(self, app, admin_user):
        app.config['AUDIT_DEDUP_SECONDS'] = 0
        old = _record(admin_user.id, {'cost': '0'}, {'cost': '1'})
        old.created_at = datetime.utcnow() - timedelta(days=3)
        db.session.commit()
        _record(admin_user.id, {'cost': '1'}, {'cost': '2'})

        entries, total = get_audit_logs(date_from=datetime.utcnow() - timedelta(days=1))
        assert total == 1
        entries, total = get_audit_logs(date_to=datetime.utcnow() - timedelta(days=1))
        assert total == 1
        assert entries[0].new_values['cost'] == '1'
