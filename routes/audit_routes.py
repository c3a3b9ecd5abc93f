"""
Audit routes — read side of the audit trail (approvers only).

    GET /api/audit                               — Paginated, filterable audit feed
    GET /api/audit/<type>/<id>                   — Chronological history of one record
    GET /api/audit/<type>/<id>/sessions          — Grouped edit sessions with diffs
"""
from datetime import datetime

from flask import jsonify, request


def _parse_date(value, name):
    from core.permissions.errors import ValidationError

    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise ValidationError(f'{name} must be an ISO date or datetime')


def _require_approver():
    from core.permissions import current_actor
    from core.permissions.errors import PermissionDenied

    actor = current_actor()
    if not actor.elevated:
        raise PermissionDenied('Access denied')
    return actor


def register_audit_routes(app):

    @app.route('/api/audit', methods=['GET'])
    def audit_list():
        """Query the audit trail.

        Query params:
            page (int, optional): 1-based page (default 1).
            limit (int, optional): Page size (default 50, max 200).
            actor_id (int, optional): Filter by actor.
            resource_type (str, optional): Filter by resource kind.
            resource_id (str, optional): Filter by record id.
            action (str, optional): create | update | delete | approve_edit | reject_edit.
            date_from, date_to (ISO, optional): created_at range [from, to).
            display_id (str, optional): Substring of the record's display label.
        """
        _require_approver()

        page = max(request.args.get('page', 1, type=int), 1)
        limit = min(max(request.args.get('limit', 50, type=int), 1), 200)

        from core.permissions import get_audit_logs

        entries, total = get_audit_logs(
            page=page,
            limit=limit,
            actor_id=request.args.get('actor_id', type=int),
            resource_type=request.args.get('resource_type'),
            resource_id=request.args.get('resource_id'),
            action=request.args.get('action'),
            date_from=_parse_date(request.args.get('date_from'), 'date_from'),
            date_to=_parse_date(request.args.get('date_to'), 'date_to'),
            display_id=request.args.get('display_id'),
        )
        return jsonify({
            'entries': [e.to_dict() for e in entries],
            'total': total,
            'page': page,
            'limit': limit,
        })

    @app.route('/api/audit/<resource_type>/<resource_id>', methods=['GET'])
    def audit_resource_history(resource_type, resource_id):
        _require_approver()

        from core.permissions import get_resource_history

        entries = get_resource_history(resource_type, resource_id)
        return jsonify({
            'entries': [e.to_dict() for e in entries],
            'count': len(entries),
        })

    @app.route('/api/audit/<resource_type>/<resource_id>/sessions', methods=['GET'])
    def audit_resource_sessions(resource_type, resource_id):
        _require_approver()

        from core.permissions import get_edit_sessions

        sessions = get_edit_sessions(resource_type, resource_id)
        return jsonify({
            'sessions': sessions,
            'count': len(sessions),
        })
