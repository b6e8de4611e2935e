#!/usr/bin/env python3
"""Create the database tables and, when ADMIN_EMAIL/ADMIN_PASSWORD are set, an admin account."""
import os
import sys

from admin_auth import create_admin
from app import create_app
from database import db, ScholarshipRequest, ArchivedRequest


def main(app=None):
    app = app or create_app()
    with app.app_context():
        try:
            print('Creating database tables...')
            db.create_all()
            print('✓ Tables created')

            admin_email = os.environ.get('ADMIN_EMAIL')
            admin_password = os.environ.get('ADMIN_PASSWORD')
            if admin_email and admin_password:
                admin = create_admin(admin_email, admin_password)
                print(f'✓ Admin account ready: {admin.email}')

            active = ScholarshipRequest.query.count()
            archived = ArchivedRequest.query.count()
            print(f'✓ Database ready ({active} active, {archived} archived requests)')
        except Exception as e:
            print(f'✗ Error: {e}')
            return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
