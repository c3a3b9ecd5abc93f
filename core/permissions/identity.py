"""
Identity and role resolution for the current request.
"""
from __future__ import annotations

from dataclasses import dataclass

from flask import has_request_context, session

from core.permissions.constants import coerce_role, is_editor, is_elevated
from core.permissions.errors import Unauthorized


@dataclass(frozen=True)
class Actor:
    """Immutable caller identity: who is acting, and with which role."""

    id: int
    role: str
    email: str | None = None

    @property
    def elevated(self) -> bool:
        return is_elevated(self.role)

    @property
    def editor(self) -> bool:
        return is_editor(self.role)


def get_actor(user_id) -> Actor:
    """Load the Actor for a user id.

    Raises:
        Unauthorized: If the user does not exist or has an unknown role.
    """
    from models import db, User

    if user_id is None:
        raise Unauthorized()
    user = db.session.get(User, user_id)
    if user is None:
        raise Unauthorized()
    if coerce_role(user.role) is None:
        raise Unauthorized(f'Unknown role {user.role!r}')
    return Actor(id=user.id, role=user.role, email=user.email)


def current_actor() -> Actor:
    """Resolve the actor from the Flask session (``session['user_id']``)."""
    if not has_request_context():
        raise Unauthorized()
    return get_actor(session.get('user_id'))
