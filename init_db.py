"""
Initialize the database with tables and an optional admin profile
"""
import os

from server import app
from models import db, User


def init_database(admin_email=None):
    """Create all database tables and seed the admin profile if requested"""
    with app.app_context():
        db.create_all()
        print("✅ Database tables created successfully!")

        admin_email = (admin_email or os.environ.get('ADMIN_EMAIL') or '').strip().lower()
        if not admin_email:
            print("ℹ️  ADMIN_EMAIL not set, skipping admin seed.")
            return None

        user = User.query.filter_by(email=admin_email).first()
        if user is None:
            user = User(email=admin_email, role='admin')
            db.session.add(user)
            db.session.commit()
            print(f"✅ Seeded admin profile: {admin_email}")
        elif user.role != 'admin':
            user.role = 'admin'
            db.session.commit()
            print(f"✅ Promoted existing user {admin_email} to admin")
        else:
            print(f"ℹ️  Admin {admin_email} already exists, skipping seed.")
        return user.id


if __name__ == '__main__':
    init_database()
