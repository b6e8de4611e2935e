import logging
from functools import wraps
from typing import NamedTuple, Optional

from blinker import Namespace
from flask import flash, jsonify, redirect, request, session, url_for
from werkzeug.security import check_password_hash, generate_password_hash

from database import db, AdminUser

logger = logging.getLogger(__name__)

SESSION_KEY = 'admin_user_id'
INVALID_CREDENTIALS = 'Invalid login credentials'

auth_signals = Namespace()
auth_state_changed = auth_signals.signal('auth-state-changed')


class AuthResult(NamedTuple):
    success: bool
    error: Optional[str] = None
    user: Optional[AdminUser] = None


def create_admin(email, password):
    email = email.strip().lower()
    admin = AdminUser.query.filter_by(email=email).first()
    if admin is None:
        admin = AdminUser(email=email)
        db.session.add(admin)
    admin.password_hash = generate_password_hash(password)
    db.session.commit()
    return admin


def sign_in(email, password):
    email = (email or '').strip().lower()
    if not email or not password:
        return AuthResult(False, 'Email and password are required')

    admin = AdminUser.query.filter_by(email=email).first()
    if admin is None or not check_password_hash(admin.password_hash, password):
        logger.warning('Failed admin sign-in for %s', email)
        return AuthResult(False, INVALID_CREDENTIALS)

    session.clear()
    session[SESSION_KEY] = admin.id
    session.permanent = True
    logger.info('Admin %s signed in', admin.email)
    auth_state_changed.send(admin, user=admin)
    return AuthResult(True, user=admin)


def sign_out():
    admin = get_session()
    session.pop(SESSION_KEY, None)
    if admin is not None:
        logger.info('Admin %s signed out', admin.email)
    auth_state_changed.send(None, user=None)
    return AuthResult(True)


def get_session():
    admin_id = session.get(SESSION_KEY)
    if not admin_id:
        return None
    admin = db.session.get(AdminUser, admin_id)
    if admin is None:
        # Account removed while the cookie was still valid
        session.pop(SESSION_KEY, None)
    return admin


def on_auth_state_change(callback):
    """Call ``callback(user)`` on every sign-in (user) and sign-out (None).

    Returns a function that removes the subscription.
    """
    def receiver(sender, user=None, **extra):
        callback(user)

    auth_state_changed.connect(receiver, weak=False)

    def unsubscribe():
        auth_state_changed.disconnect(receiver)

    return unsubscribe


def login_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if get_session() is None:
            if request.is_json or request.path.startswith('/admin/api/'):
                return jsonify({'success': False, 'error': 'Unauthorized'}), 401
            flash('Please sign in', 'error')
            return redirect(url_for('admin.login', next=request.path))
        return view(*args, **kwargs)
    return wrapped
