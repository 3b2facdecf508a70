# models/leave_records.py
from datetime import datetime
from decimal import Decimal

from ayurclinic.addons.enums import LeaveStatus, LeaveType, values
from ayurclinic.addons.extensions import BaseModel, db
from ayurclinic.addons.functions import as_float, iso
from ayurclinic.addons.leave_calculator import BALANCE_FIELDS

DEFAULT_SICK_LEAVE = 12
DEFAULT_CASUAL_LEAVE = 12
DEFAULT_EARNED_LEAVE = 15


class StaffLeave(BaseModel):
    __tablename__ = 'staff_leaves'

    # Enums
    leave_type_enum = db.Enum(*values(LeaveType), name='leave_type')
    status_enum = db.Enum(*values(LeaveStatus), name='leave_status')

    staff_id = db.Column(db.Integer, db.ForeignKey('staff.id'), nullable=False, index=True)
    clinic_id = db.Column(db.Integer, db.ForeignKey('clinics.id'), nullable=False)
    leave_type = db.Column(leave_type_enum, nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    total_days = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.Text)
    status = db.Column(status_enum, nullable=False, default=LeaveStatus.PENDING.value)
    applied_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    reviewed_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    review_notes = db.Column(db.Text)
    reviewed_date = db.Column(db.DateTime)

    # Relationships
    staff = db.relationship('Staff', backref=db.backref('leaves', lazy=True), lazy=True)
    reviewed_by_user = db.relationship('User', foreign_keys=[reviewed_by], lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'staff_id': self.staff_id,
            'clinic_id': self.clinic_id,
            'leave_type': self.leave_type,
            'start_date': iso(self.start_date),
            'end_date': iso(self.end_date),
            'total_days': self.total_days,
            'reason': self.reason,
            'status': self.status,
            'applied_date': iso(self.applied_date),
            'reviewed_by': self.reviewed_by,
            'review_notes': self.review_notes,
            'reviewed_date': iso(self.reviewed_date),
            'staff': self.staff.summary() if self.staff else None,
            'reviewed_by_user': self.reviewed_by_user.brief() if self.reviewed_by_user else None,
        }


class LeaveBalance(BaseModel):
    __tablename__ = 'leave_balances'
    __table_args__ = (
        db.UniqueConstraint('staff_id', 'year', name='uq_leave_balance_staff_year'),
    )

    staff_id = db.Column(db.Integer, db.ForeignKey('staff.id'), nullable=False)
    clinic_id = db.Column(db.Integer, db.ForeignKey('clinics.id'), nullable=False)
    year = db.Column(db.Integer, nullable=False)

    sick_leave_total = db.Column(db.Numeric(5, 1), nullable=False, default=DEFAULT_SICK_LEAVE)
    sick_leave_used = db.Column(db.Numeric(5, 1), nullable=False, default=0)
    sick_leave_balance = db.Column(db.Numeric(5, 1), nullable=False, default=DEFAULT_SICK_LEAVE)
    casual_leave_total = db.Column(db.Numeric(5, 1), nullable=False, default=DEFAULT_CASUAL_LEAVE)
    casual_leave_used = db.Column(db.Numeric(5, 1), nullable=False, default=0)
    casual_leave_balance = db.Column(db.Numeric(5, 1), nullable=False, default=DEFAULT_CASUAL_LEAVE)
    earned_leave_total = db.Column(db.Numeric(5, 1), nullable=False, default=DEFAULT_EARNED_LEAVE)
    earned_leave_used = db.Column(db.Numeric(5, 1), nullable=False, default=0)
    earned_leave_balance = db.Column(db.Numeric(5, 1), nullable=False, default=DEFAULT_EARNED_LEAVE)

    staff = db.relationship('Staff', backref=db.backref('leave_balances', lazy=True), lazy=True)

    @classmethod
    def for_year(cls, staff_id, year):
        return cls.query.filter_by(staff_id=staff_id, year=year).first()

    def available(self, leave_type):
        """Remaining days for a tracked leave type; UNPAID is never tracked."""
        fields = BALANCE_FIELDS.get(leave_type)
        if not fields:
            return Decimal('0')
        return Decimal(getattr(self, fields[1]) or 0)

    def consume(self, leave_type, days):
        used_field, balance_field = BALANCE_FIELDS[leave_type]
        setattr(self, used_field, Decimal(getattr(self, used_field) or 0) + days)
        setattr(self, balance_field, Decimal(getattr(self, balance_field) or 0) - days)

    def to_dict(self):
        return {
            'id': self.id,
            'staff_id': self.staff_id,
            'year': self.year,
            'sick_leave_total': as_float(self.sick_leave_total),
            'sick_leave_used': as_float(self.sick_leave_used),
            'sick_leave_balance': as_float(self.sick_leave_balance),
            'casual_leave_total': as_float(self.casual_leave_total),
            'casual_leave_used': as_float(self.casual_leave_used),
            'casual_leave_balance': as_float(self.casual_leave_balance),
            'earned_leave_total': as_float(self.earned_leave_total),
            'earned_leave_used': as_float(self.earned_leave_used),
            'earned_leave_balance': as_float(self.earned_leave_balance),
        }
