"""JWT helpers and role-gating decorators"""

from datetime import datetime, timezone
from functools import wraps

import jwt
from flask import current_app, g, request

from errors import ForbiddenError, UnauthorizedError
from models import db, User


def create_jwt_token(user):
    """Create a JWT token for the user"""
    now = datetime.now(timezone.utc)
    payload = {
        'user_id': user.id,
        'exp': now + current_app.config['JWT_EXPIRATION'],
        'iat': now,
    }
    return jwt.encode(payload, current_app.config['SECRET_KEY'],
                      algorithm=current_app.config['JWT_ALGORITHM'])


def verify_jwt_token(token):
    """Verify JWT token and return payload if valid"""
    try:
        return jwt.decode(token, current_app.config['SECRET_KEY'],
                          algorithms=[current_app.config['JWT_ALGORITHM']])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def get_current_user():
    """Get current user from the bearer token"""
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        payload = verify_jwt_token(auth_header[7:])
        if payload:
            return db.session.get(User, payload.get('user_id'))
    return None


def login_required(f):
    """Authentication decorator; the user is available as g.user"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = get_current_user()
        if not user:
            raise UnauthorizedError('Unauthorized')
        g.user = user
        return f(*args, **kwargs)
    return decorated_function


def roles_required(allowed):
    """Restrict a view to users whose role is in ``allowed``"""
    def decorator(f):
        @wraps(f)
        @login_required
        def decorated_function(*args, **kwargs):
            if g.user.role not in allowed:
                raise ForbiddenError('You are not allowed to access this resource')
            return f(*args, **kwargs)
        return decorated_function
    return decorator
