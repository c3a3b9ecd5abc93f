"""
Resource routes — every mutation of a business record goes through the gate.

    GET    /api/resources/<type>/<id>           — Current snapshot
    POST   /api/resources/<type>                — Create
    PATCH  /api/resources/<type>/<id>           — Partial update (grant-gated)
    POST   /api/resources/<type>/<id>/status    — Inline status change (grant-gated)
    DELETE /api/resources/<type>/<id>           — Delete (elevated roles only)
"""
from flask import jsonify, request, session


def _internal_error(where, e):
    from models import db

    db.session.rollback()
    print(f"[routes] {where} failed: {e}")
    return jsonify({'error': 'An internal error occurred'}), 500


def register_resource_routes(app):

    from core.permissions.errors import EditPermissionError, ValidationError

    @app.route('/api/resources/<resource_type>/<resource_id>', methods=['GET'])
    def resources_get(resource_type, resource_id):
        from core.permissions import current_actor
        from core.resources import read_resource, RESOURCE_TYPES

        current_actor()
        if resource_type not in RESOURCE_TYPES:
            raise ValidationError(f'Unknown resource type: {resource_type}')
        return jsonify({'resource': read_resource(resource_type, resource_id)})

    @app.route('/api/resources/<resource_type>', methods=['POST'])
    def resources_create(resource_type):
        user_id = session.get('user_id')
        if not user_id:
            return jsonify({'error': 'Authentication required'}), 401

        data = request.get_json(silent=True)
        if not data:
            return jsonify({'error': 'Request body is required'}), 400

        from core.permissions import create_resource

        try:
            result = create_resource(resource_type, data)
        except EditPermissionError:
            raise
        except Exception as e:
            return _internal_error('create resource', e)

        return jsonify({'success': True, **result}), 201

    @app.route('/api/resources/<resource_type>/<resource_id>', methods=['PATCH'])
    def resources_update(resource_type, resource_id):
        """Partial update.

        Body:
            dict of field -> value. Editors must hold an approved grant,
            which this call consumes.
        """
        user_id = session.get('user_id')
        if not user_id:
            return jsonify({'error': 'Authentication required'}), 401

        data = request.get_json(silent=True)
        if not data:
            return jsonify({'error': 'Request body is required'}), 400

        from core.permissions import update_resource

        try:
            result = update_resource(resource_type, resource_id, data)
        except EditPermissionError:
            raise
        except Exception as e:
            return _internal_error('update resource', e)

        return jsonify({'success': True, **result})

    @app.route('/api/resources/<resource_type>/<resource_id>/status', methods=['POST'])
    def resources_status(resource_type, resource_id):
        user_id = session.get('user_id')
        if not user_id:
            return jsonify({'error': 'Authentication required'}), 401

        data = request.get_json(silent=True) or {}

        from core.permissions import change_status

        try:
            result = change_status(resource_type, resource_id, data.get('status'))
        except EditPermissionError:
            raise
        except Exception as e:
            return _internal_error('change status', e)

        return jsonify({'success': True, **result})

    @app.route('/api/resources/<resource_type>/<resource_id>', methods=['DELETE'])
    def resources_delete(resource_type, resource_id):
        user_id = session.get('user_id')
        if not user_id:
            return jsonify({'error': 'Authentication required'}), 401

        from core.permissions import delete_resource

        try:
            result = delete_resource(resource_type, resource_id)
        except EditPermissionError:
            raise
        except Exception as e:
            return _internal_error('delete resource', e)

        return jsonify({'success': True, **result})
