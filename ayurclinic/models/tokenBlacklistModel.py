from datetime import datetime

from ..addons.extensions import BaseModel, db

class TokenBlacklist(BaseModel):
    """Access tokens revoked at logout, keyed by their JWT id."""
    __tablename__ = 'token_blacklist'

    jti = db.Column(db.String(64), unique=True, nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    expires_at = db.Column(db.DateTime, nullable=True)

    @classmethod
    def is_revoked(cls, jti):
        return db.session.query(cls.id).filter_by(jti=jti).first() is not None

    @classmethod
    def revoke(cls, jwt_payload, user_id):
        """Add the token to the session; the caller commits."""
        exp = jwt_payload.get('exp')
        entry = cls(
            jti=jwt_payload['jti'],
            user_id=user_id,
            expires_at=datetime.utcfromtimestamp(exp) if exp else None,
        )
        db.session.add(entry)
        return entry
