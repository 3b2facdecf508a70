import logging

from flask import current_app
from flask_openapi3 import APIBlueprint, Tag
from flask_jwt_extended import create_access_token, get_jwt, jwt_required
from pydantic import BaseModel, EmailStr, Field, field_validator

from ...addons.extensions import db
from ...addons.functions import error_response, jsonifyFormat
from ...addons.tenancy import current_user_id
from ...models import TokenBlacklist, User

logger = logging.getLogger(__name__)

auth_tag = Tag(name="Auth", description="Authentication")
auth_bp = APIBlueprint(
    'auth', __name__, url_prefix='/api/auth', abp_tags=[auth_tag]
)

# ---------------------- SCHEMAS ---------------------- #
class LoginSchema(BaseModel):
    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=1, description="User's password")

    @field_validator('email', mode='before')
    @classmethod
    def email_to_lowercase(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

class LoginResponseSchema(BaseModel):
    access_token: str = Field(..., description="JWT access token")
    expires_in: int = Field(..., description="Token lifetime in seconds")
    user: dict = Field(..., description="User information with clinic and role")

class LogoutResponseSchema(BaseModel):
    message: str = Field(..., description="Logout status message")

class ErrorResponse(BaseModel):
    status: int = Field(..., description="HTTP status code")
    error: str = Field(..., description="Error message")


# ---------------------- LOGIN ---------------------- #
@auth_bp.post('/login', responses={"200": LoginResponseSchema, "401": ErrorResponse})
def login(body: LoginSchema):
    """User login - returns a JWT access token
    The token carries the user's clinic and role as claims.
    """
    try:
        user = User.query.filter_by(email=body.email).first()
        if not user or not user.check_password(body.password):
            return error_response('Invalid credentials', 401)

        if not user.is_active:
            return error_response('Account is inactive', 401)

        access_token = create_access_token(identity=str(user.id), additional_claims=user.token_claims())
        expires = current_app.config['JWT_ACCESS_TOKEN_EXPIRES']

        logger.info(f"User {user.id} logged in to clinic {user.clinic_id}")
        return jsonifyFormat({
            'access_token': access_token,
            'expires_in': int(expires.total_seconds()),
            'user': user.to_dict(),
        }, 200)

    except Exception:
        logger.exception("Login error")
        return error_response('Failed to log in', 500)


# ---------------------- CURRENT USER ---------------------- #
@auth_bp.get('/me', responses={"200": None, "404": ErrorResponse}, security=[{"jwt": []}])
@jwt_required()
def get_profile():
    """Get current user profile"""
    user = db.session.get(User, current_user_id())
    if not user:
        return error_response('User not found', 404)

    profile = user.to_dict()
    profile['staff'] = user.staff_profile.summary() if user.staff_profile else None
    return jsonifyFormat({'user': profile}, 200)


# ---------------------- LOGOUT ---------------------- #
@auth_bp.post('/logout', responses={"200": LogoutResponseSchema}, security=[{"jwt": []}])
@jwt_required()
def logout():
    """Invalidate the JWT token
    Adds the current token to the blocklist to prevent further use.
    """
    try:
        payload = get_jwt()
        if not payload.get("jti"):
            return error_response('Invalid token: No JTI found', 400)

        TokenBlacklist.revoke(payload, current_user_id())
        db.session.commit()
        logger.info(f"User {current_user_id()} logged out")
        return jsonifyFormat({'message': 'Successfully logged out'}, 200)

    except Exception:
        db.session.rollback()
        logger.exception("Error during logout")
        return error_response('Error during logout', 500)
