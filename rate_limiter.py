"""
Rate limiting for the back-office API
"""
from flask import current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
import os

DEFAULT_EDIT_REQUEST_RATE_LIMIT = "20 per minute"


def get_limiter_storage_uri():
    """
    Storage URI for the limiter: Redis when REDIS_URL is set, memory otherwise
    """
    redis_url = os.environ.get('REDIS_URL')
    if redis_url:
        return redis_url
    return "memory://"


limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=get_limiter_storage_uri(),
    default_limits=["2000 per hour", "200 per minute"],
    storage_options={"socket_connect_timeout": 30},
    strategy="fixed-window",
)


def edit_request_limit():
    """Throttle for edit-request submission, read from app config per request"""
    return current_app.config.get('EDIT_REQUEST_RATE_LIMIT', DEFAULT_EDIT_REQUEST_RATE_LIMIT)


def init_limiter(app):
    """Initialize rate limiter with Flask app"""
    limiter.init_app(app)
    return limiter
