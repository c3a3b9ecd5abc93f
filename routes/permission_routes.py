"""
Edit permission routes — agents request, approvers decide.

    POST /api/edit-requests                          — Agent submits (or refreshes) a request
    GET  /api/edit-requests                          — Paginated request history (approvers)
    GET  /api/edit-requests/pending                  — Pending queue (approvers)
    GET  /api/edit-requests/pending/count            — Pending badge count (approvers)
    POST /api/edit-requests/<id>/approve             — Approve, applying a staged draft
    POST /api/edit-requests/<id>/reject              — Reject
    GET  /api/edit-requests/active                   — Resource ids the caller may edit now
    GET  /api/edit-requests/check/<type>/<id>        — Does the caller hold a grant?
"""
from flask import jsonify, request, session

from rate_limiter import limiter, edit_request_limit


def _require_approver():
    from core.permissions import current_actor
    from core.permissions.errors import PermissionDenied

    actor = current_actor()
    if not actor.elevated:
        raise PermissionDenied('Access denied')
    return actor


def _internal_error(where, e):
    from models import db

    db.session.rollback()
    print(f"[routes] {where} failed: {e}")
    return jsonify({'error': 'An internal error occurred'}), 500


def register_permission_routes(app):

    from core.permissions.errors import EditPermissionError

    @app.route('/api/edit-requests', methods=['POST'])
    @limiter.limit(edit_request_limit)
    def edit_requests_submit():
        """Submit an edit request.

        Body:
            resource_type (str): e.g. 'flights'.
            resource_id (str|int): Target record.
            reason (str): Justification shown to approvers.
            metadata (dict, optional): displayId, draft, ...
        """
        user_id = session.get('user_id')
        if not user_id:
            return jsonify({'error': 'Authentication required'}), 401

        data = request.get_json(silent=True)
        if not data:
            return jsonify({'error': 'Request body is required'}), 400

        resource_type = data.get('resource_type')
        resource_id = data.get('resource_id')
        reason = data.get('reason')

        if not resource_type:
            return jsonify({'error': 'resource_type is required'}), 400
        if resource_id is None or str(resource_id).strip() == '':
            return jsonify({'error': 'resource_id is required'}), 400
        if not reason or not str(reason).strip():
            return jsonify({'error': 'reason is required'}), 400

        from core.permissions import submit_edit_request

        try:
            edit_request = submit_edit_request(
                resource_type=resource_type,
                resource_id=resource_id,
                requester_id=user_id,
                reason=str(reason),
                metadata=data.get('metadata'),
            )
        except EditPermissionError:
            raise
        except Exception as e:
            return _internal_error('submit edit request', e)

        return jsonify({
            'success': True,
            'request': edit_request.to_dict(),
        }), 201

    @app.route('/api/edit-requests', methods=['GET'])
    def edit_requests_list():
        """Paginated request history.

        Query params:
            page (int, optional): 1-based page (default 1).
            limit (int, optional): Page size (default 20, max 100).
            status (str, optional): Filter by status.
            agent_id (int, optional): Filter by requester.
        """
        _require_approver()

        page = max(request.args.get('page', 1, type=int), 1)
        limit = min(max(request.args.get('limit', 20, type=int), 1), 100)

        from core.permissions import get_all_edit_requests

        items, total = get_all_edit_requests(
            page=page,
            limit=limit,
            status=request.args.get('status'),
            agent_id=request.args.get('agent_id', type=int),
        )
        return jsonify({
            'requests': [r.to_dict() for r in items],
            'total': total,
            'page': page,
            'limit': limit,
        })

    @app.route('/api/edit-requests/pending', methods=['GET'])
    def edit_requests_pending():
        _require_approver()

        limit = min(max(request.args.get('limit', 100, type=int), 1), 200)

        from core.permissions import get_pending_edit_requests

        results = get_pending_edit_requests(limit=limit)
        return jsonify({
            'requests': [r.to_dict() for r in results],
            'count': len(results),
        })

    @app.route('/api/edit-requests/pending/count', methods=['GET'])
    def edit_requests_pending_count():
        _require_approver()

        from core.permissions import count_pending_edit_requests

        return jsonify({'count': count_pending_edit_requests()})

    @app.route('/api/edit-requests/<int:request_id>/approve', methods=['POST'])
    def edit_requests_approve(request_id):
        user_id = session.get('user_id')
        if not user_id:
            return jsonify({'error': 'Authentication required'}), 401

        from core.permissions import approve_edit_request

        try:
            result = approve_edit_request(request_id, approver_id=user_id)
        except EditPermissionError:
            raise
        except Exception as e:
            return _internal_error('approve edit request', e)

        return jsonify({'success': True, **result})

    @app.route('/api/edit-requests/<int:request_id>/reject', methods=['POST'])
    def edit_requests_reject(request_id):
        user_id = session.get('user_id')
        if not user_id:
            return jsonify({'error': 'Authentication required'}), 401

        from core.permissions import reject_edit_request

        try:
            result = reject_edit_request(request_id, approver_id=user_id)
        except EditPermissionError:
            raise
        except Exception as e:
            return _internal_error('reject edit request', e)

        return jsonify({'success': True, **result})

    @app.route('/api/edit-requests/active', methods=['GET'])
    def edit_requests_active():
        """Resource ids the caller holds a usable grant on.

        Query params:
            resource_type (str, optional): Restrict to one resource kind.
        """
        from core.permissions import current_actor, get_active_permissions

        actor = current_actor()
        resource_type = request.args.get('resource_type')
        return jsonify({
            'resource_type': resource_type,
            'resource_ids': get_active_permissions(actor.id, resource_type=resource_type),
        })

    @app.route('/api/edit-requests/check/<resource_type>/<resource_id>', methods=['GET'])
    def edit_requests_check(resource_type, resource_id):
        from core.permissions import current_actor, has_active_grant

        actor = current_actor()
        grant = has_active_grant(resource_type, resource_id, actor.id, actor.role)
        return jsonify({
            'has_permission': grant is not None,
            'request_id': grant.request_id if grant else None,
            'reason': grant.reason if grant else None,
        })
