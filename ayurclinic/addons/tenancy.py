# addons/tenancy.py
"""Clinic and actor context taken from the authenticated access token.

Handlers never trust a clinic id sent by the client: the token's
``clinic_id`` claim is the tenant for every query and write.
"""
from functools import wraps

from flask_jwt_extended import get_jwt, get_jwt_identity

from .exceptions import AuthorizationError, ValidationError
from .functions import error_response


def current_user_id():
    identity = get_jwt_identity()
    return int(identity) if identity is not None else None


def current_clinic_id():
    return get_jwt().get('clinic_id')


def current_role():
    return get_jwt().get('role')


def resolve_clinic_id(requested=None):
    """Return the token's clinic, rejecting a client-supplied clinic that differs."""
    clinic_id = current_clinic_id()
    if requested not in (None, '') and str(requested) != str(clinic_id):
        raise AuthorizationError('Access to another clinic is not allowed')
    return clinic_id


def resolve_actor_id(supplied=None):
    """Actor recorded on a write: the explicit id when given, else the caller."""
    if supplied not in (None, ''):
        try:
            return int(supplied)
        except (TypeError, ValueError):
            raise ValidationError('Invalid actor id')
    return current_user_id()


def roles_required(*roles):
    """Reject callers whose token role is not one of `roles` (use after jwt_required)."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if current_role() not in roles:
                return error_response('Access denied', 403)
            return fn(*args, **kwargs)
        return wrapper
    return decorator
