# models/clinics.py
from ayurclinic.addons.extensions import BaseModel, db

class Clinic(BaseModel):
    __tablename__ = 'clinics'

    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(50), unique=True, nullable=False)
    phone = db.Column(db.String(20))
    address = db.Column(db.Text)
    status = db.Column(db.String(50), default='Active')

    # Relationships
    staff = db.relationship('Staff', backref='clinic', lazy=True)
    users = db.relationship('User', backref='clinic', lazy=True)
