from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_jwt_extended import JWTManager
import pymysql

pymysql.install_as_MySQLdb()

db = SQLAlchemy()
bcrypt = Bcrypt()
jwt = JWTManager()

class BaseModel(db.Model):
    __abstract__ = True

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    created_at = db.Column(db.DateTime, default=db.func.current_timestamp())
    updated_at = db.Column(db.DateTime, default=db.func.current_timestamp(),
                          onupdate=db.func.current_timestamp())

    @classmethod
    def for_clinic(cls, clinic_id):
        """Query limited to one clinic's rows."""
        return cls.query.filter(cls.clinic_id == clinic_id)

    @classmethod
    def latest_for_clinic(cls, clinic_id, *criteria):
        """Most recently created row of the clinic, used to continue number sequences."""
        return cls.for_clinic(clinic_id).filter(*criteria).order_by(
            cls.created_at.desc(), cls.id.desc()
        ).first()
