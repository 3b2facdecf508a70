# models/payroll.py
from ayurclinic.addons.enums import PaymentStatus, values
from ayurclinic.addons.extensions import BaseModel, db
from ayurclinic.addons.functions import as_float, iso

class Payroll(BaseModel):
    __tablename__ = 'payrolls'
    __table_args__ = (
        db.UniqueConstraint('clinic_id', 'staff_id', 'month', 'year', name='uq_payroll_staff_period'),
        db.UniqueConstraint('clinic_id', 'payroll_number', name='uq_payroll_number'),
    )

    # Status enum
    status_enum = db.Enum(*values(PaymentStatus), name='payroll_status')

    payroll_number = db.Column(db.String(20), nullable=False)
    staff_id = db.Column(db.Integer, db.ForeignKey('staff.id'), nullable=False, index=True)
    clinic_id = db.Column(db.Integer, db.ForeignKey('clinics.id'), nullable=False)
    month = db.Column(db.Integer, nullable=False)
    year = db.Column(db.Integer, nullable=False)

    # Earnings
    basic_salary = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    allowances = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    hra = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    other_allowances = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Attendance
    days_present = db.Column(db.Integer, nullable=False, default=0)
    days_absent = db.Column(db.Numeric(5, 1), nullable=False, default=0)
    total_working_days = db.Column(db.Integer, nullable=False, default=30)

    # Deductions
    absence_deduction = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    other_deductions = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Totals
    gross_salary = db.Column(db.Numeric(12, 2), nullable=False)
    total_deductions = db.Column(db.Numeric(12, 2), nullable=False)
    net_salary = db.Column(db.Numeric(12, 2), nullable=False)

    # Status and payment
    payment_status = db.Column(status_enum, nullable=False, default=PaymentStatus.PENDING.value)
    payment_date = db.Column(db.DateTime)
    payment_method = db.Column(db.String(30))
    payment_reference = db.Column(db.String(100))
    notes = db.Column(db.Text)

    generated_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    paid_by = db.Column(db.Integer, db.ForeignKey('users.id'))

    # Relationships
    staff = db.relationship('Staff', backref=db.backref('payrolls', lazy=True), lazy=True)
    generated_by_user = db.relationship('User', foreign_keys=[generated_by], lazy=True)
    paid_by_user = db.relationship('User', foreign_keys=[paid_by], lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'payroll_number': self.payroll_number,
            'staff_id': self.staff_id,
            'clinic_id': self.clinic_id,
            'month': self.month,
            'year': self.year,
            'basic_salary': as_float(self.basic_salary),
            'allowances': as_float(self.allowances),
            'hra': as_float(self.hra),
            'other_allowances': as_float(self.other_allowances),
            'days_present': self.days_present,
            'days_absent': as_float(self.days_absent),
            'total_working_days': self.total_working_days,
            'absence_deduction': as_float(self.absence_deduction),
            'other_deductions': as_float(self.other_deductions),
            'gross_salary': as_float(self.gross_salary),
            'total_deductions': as_float(self.total_deductions),
            'net_salary': as_float(self.net_salary),
            'payment_status': self.payment_status,
            'payment_date': iso(self.payment_date),
            'payment_method': self.payment_method,
            'payment_reference': self.payment_reference,
            'notes': self.notes,
            'generated_by': self.generated_by,
            'paid_by': self.paid_by,
            'created_at': iso(self.created_at),
            'staff': self.staff.summary() if self.staff else None,
            'generated_by_user': self.generated_by_user.brief() if self.generated_by_user else None,
            'paid_by_user': self.paid_by_user.brief() if self.paid_by_user else None,
        }
