#!/usr/bin/env python3
"""
Back-office Server
Flask app exposing the edit-permission and audit-trail engine
"""

from flask import Flask, jsonify
from flask_cors import CORS
import os
from pathlib import Path
from datetime import datetime
import secrets

app = Flask(__name__)
CORS(app, supports_credentials=True)

# Secret key for sessions (generate a secure one for production)
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', secrets.token_hex(32))

# Database configuration
database_url = os.environ.get('DATABASE_URL', f'sqlite:///{Path(__file__).parent}/backoffice.db')

# Fix Heroku-style postgres:// scheme (should be postgresql://)
if database_url and database_url.startswith('postgres://'):
    database_url = database_url.replace('postgres://', 'postgresql://', 1)

app.config['SQLALCHEMY_DATABASE_URI'] = database_url
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

# PostgreSQL-specific connection pool settings
if database_url and database_url.startswith('postgresql://'):
    app.config['SQLALCHEMY_ENGINE_OPTIONS'] = {
        'pool_size': 5,
        'max_overflow': 10,
        'pool_recycle': 300,
        'pool_pre_ping': True,
        'pool_timeout': 30,
    }
else:
    # SQLite settings (for local dev)
    app.config['SQLALCHEMY_ENGINE_OPTIONS'] = {
        'pool_pre_ping': True
    }

# Edit-permission tunables
app.config['EDIT_GRANT_TTL_MINUTES'] = int(os.environ.get('EDIT_GRANT_TTL_MINUTES', '60'))
app.config['AUDIT_DEDUP_SECONDS'] = int(os.environ.get('AUDIT_DEDUP_SECONDS', '5'))
app.config['EDIT_REQUEST_RATE_LIMIT'] = os.environ.get('EDIT_REQUEST_RATE_LIMIT', '20 per minute')

# Import and initialize database
from models import db
db.init_app(app)

# Initialize rate limiter
from rate_limiter import init_limiter
limiter = init_limiter(app)

# Engine errors carry their own HTTP status
from core.permissions.errors import EditPermissionError


@app.errorhandler(EditPermissionError)
def handle_edit_permission_error(e):
    db.session.rollback()
    return jsonify(e.to_dict()), e.status_code


# Register edit-permission routes
from routes.permission_routes import register_permission_routes
register_permission_routes(app)

# Register resource mutation routes
from routes.resource_routes import register_resource_routes
register_resource_routes(app)

# Register audit trail routes
from routes.audit_routes import register_audit_routes
register_audit_routes(app)


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint to verify database connection"""
    try:
        db.session.execute(db.text('SELECT 1'))
        db.session.commit()
        return jsonify({
            'status': 'healthy',
            'database': 'connected',
            'timestamp': datetime.utcnow().isoformat()
        })
    except Exception as e:
        return jsonify({
            'status': 'unhealthy',
            'database': 'disconnected',
            'error': str(e),
            'timestamp': datetime.utcnow().isoformat()
        }), 503


if __name__ == '__main__':
    print("=" * 60)
    print("Back-office Server")
    print("=" * 60)
    print("Server starting on http://localhost:5000")
    print("=" * 60)

    app.run(host='0.0.0.0', port=5000, debug=True)
