"""
Role management utility
List elevated users or change a user's role
"""
from server import app
from models import db, User, USER_ROLES
import sys

ELEVATED = ('admin', 'supervisor')


def list_elevated():
    """List admin and supervisor users"""
    with app.app_context():
        users = User.query.filter(User.role.in_(ELEVATED)).order_by(User.email).all()
        if not users:
            print("No admin or supervisor users found")
            return []

        print("Current admins and supervisors:")
        for user in users:
            print(f"  - {user.email} ({user.role}, ID: {user.id})")
        return users


def set_role(email, role):
    """Set a user's role"""
    role = role.lower().strip()
    if role not in USER_ROLES:
        print(f"❌ Unknown role: {role} (expected one of {', '.join(sorted(USER_ROLES))})")
        return False

    with app.app_context():
        user = User.query.filter_by(email=email.lower().strip()).first()

        if not user:
            print(f"❌ User not found: {email}")
            return False

        if user.role == role:
            print(f"ℹ️  User {email} already has role {role}")
            return True

        previous = user.role
        user.role = role
        db.session.commit()
        print(f"✅ Changed {email} from {previous} to {role}")
        return True


def show_usage():
    """Show usage information"""
    print(f"""
Back-office Role Management Utility

Usage:
    python manage_roles.py list                     - List admins and supervisors
    python manage_roles.py set <email> <role>       - Set a user's role

Roles: {', '.join(sorted(USER_ROLES))}

Examples:
    python manage_roles.py list
    python manage_roles.py set user@example.com supervisor
    """)


if __name__ == '__main__':
    if len(sys.argv) < 2:
        show_usage()
        sys.exit(1)

    command = sys.argv[1].lower()

    if command == 'list':
        list_elevated()
    elif command == 'set':
        if len(sys.argv) < 4:
            print("❌ Email and role required")
            show_usage()
            sys.exit(1)
        if not set_role(sys.argv[2], sys.argv[3]):
            sys.exit(1)
    else:
        print(f"❌ Unknown command: {command}")
        show_usage()
        sys.exit(1)
