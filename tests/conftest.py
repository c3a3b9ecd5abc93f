"""
Pytest configuration and shared fixtures for the back-office edit-permission tests
"""
import pytest
import os
import sys
import tempfile
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment before importing app
os.environ['FLASK_ENV'] = 'testing'
os.environ['TESTING'] = 'true'


@pytest.fixture(scope='session')
def app():
    """Create and configure a test Flask application instance"""
    from server import app as flask_app
    from models import db
    from rate_limiter import limiter

    # Create a temporary database for testing
    db_fd, db_path = tempfile.mkstemp(suffix='.db')

    flask_app.config.update({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SECRET_KEY': 'test-secret-key',
        'EDIT_GRANT_TTL_MINUTES': 60,
        'AUDIT_DEDUP_SECONDS': 5,
    })

    # Disable rate limiting for tests (must be done after init_limiter ran)
    limiter.enabled = False

    # Create tables inside a persistent app context
    with flask_app.app_context():
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()

    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture(autouse=True)
def _clean_db(app):
    """Delete every row between tests."""
    from models import db
    yield
    db.session.rollback()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    db.session.remove()
    app.config['EDIT_GRANT_TTL_MINUTES'] = 60
    app.config['AUDIT_DEDUP_SECONDS'] = 5


@pytest.fixture(scope='function')
def client(app):
    """Create a test client for the Flask application"""
    return app.test_client()


def _make_user(email, role, first_name=None, last_name=None):
    from models import User, db

    user = User(
        email=email,
        first_name=first_name,
        last_name=last_name,
        role=role,
        created_at=datetime.utcnow(),
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def admin_user(app):
    return _make_user('admin@example.com', 'admin', 'Ana', 'Admin')


@pytest.fixture
def supervisor_user(app):
    return _make_user('supervisor@example.com', 'supervisor', 'Sergio', 'Super')


@pytest.fixture
def agent_user(app):
    return _make_user('agent@example.com', 'agent', 'Xavier', 'Agent')


@pytest.fixture
def other_agent_user(app):
    return _make_user('other.agent@example.com', 'usuario', 'Olga', 'Other')


@pytest.fixture
def client_user(app):
    return _make_user('client@example.com', 'client', 'Carla', 'Client')


@pytest.fixture
def actor_for(app):
    """Resolve a User into the immutable Actor the gate expects."""
    from core.permissions import get_actor

    def _actor(user):
        return get_actor(user.id)
    return _actor


@pytest.fixture
def flight(app, agent_user):
    """Flight 42 with a cost of 100.00 and one payment line."""
    from models import Flight, db

    f = Flight(
        id=42,
        pnr='ABC123',
        itinerary='HAV-MIA',
        travel_date=date(2026, 11, 2),
        cost=Decimal('100.00'),
        sold_price=Decimal('150.00'),
        on_account=Decimal('50.00'),
        balance=Decimal('100.00'),
        payment_details=[{'method': 'cash', 'amount': '50.00'}],
        status='pending',
        agent_id=agent_user.id,
    )
    db.session.add(f)
    db.session.commit()
    return f


@pytest.fixture
def approved_grant(app, flight, agent_user, admin_user):
    """An approved, unconsumed grant for agent_user on flights/42."""
    from core.permissions import approve_edit_request, submit_edit_request

    edit_request = submit_edit_request('flights', flight.id, agent_user.id,
                                       'price correction')
    approve_edit_request(edit_request.id, admin_user.id)
    return edit_request


def login(client, user):
    """Put user_id on the test client's session."""
    with client.session_transaction() as sess:
        sess['user_id'] = user.id
        sess['user_email'] = user.email
    return client


@pytest.fixture
def login_as(client):
    def _login(user):
        return login(client, user)
    return _login
