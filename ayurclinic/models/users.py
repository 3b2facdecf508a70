from ..addons.enums import Role, values
from ..addons.extensions import BaseModel, db, bcrypt

class User(BaseModel):
    __tablename__ = 'users'

    role_enum = db.Enum(*values(Role), name='user_role')

    clinic_id = db.Column(db.Integer, db.ForeignKey('clinics.id'), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    role = db.Column(role_enum, nullable=False, default=Role.STAFF.value)
    is_active = db.Column(db.Boolean, default=True)

    def set_password(self, password):
        """Hashes and sets the user's password."""
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        """Verifies a password against the stored hash."""
        return bcrypt.check_password_hash(self.password_hash, password)

    def token_claims(self):
        return {'clinic_id': self.clinic_id, 'role': self.role}

    def brief(self):
        return {'id': self.id, 'name': self.name}

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'role': self.role,
            'clinic_id': self.clinic_id,
            'is_active': self.is_active,
        }

    def __repr__(self):
        return f"<User {self.email}>"
