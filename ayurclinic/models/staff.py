# models/staff.py
from datetime import date

from ..addons.enums import StaffRole, StaffStatus, values
from ..addons.extensions import BaseModel, db
from ..addons.functions import as_float, iso

ROLE_PREFIXES = {
    'DOCTOR': 'DOC',
    'RECEPTIONIST': 'REC',
    'THERAPIST': 'THR',
    'PHARMACIST': 'PHR',
    'LAB_TECHNICIAN': 'LAB',
    'NURSE': 'NUR',
    'MANAGER': 'MGR',
    'OTHER': 'EMP',
}


class Staff(BaseModel):
    __tablename__ = 'staff'
    __table_args__ = (
        db.UniqueConstraint('clinic_id', 'email', name='uq_staff_clinic_email'),
    )

    role_enum = db.Enum(*values(StaffRole), name='staff_role')
    status_enum = db.Enum(*values(StaffStatus), name='staff_status')

    clinic_id = db.Column(db.Integer, db.ForeignKey('clinics.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    employee_id = db.Column(db.String(20), nullable=False, index=True)

    # Personal Information
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(20), nullable=False)
    gender = db.Column(db.String(20))
    date_of_birth = db.Column(db.Date)
    address = db.Column(db.Text)

    # Employment Details
    role = db.Column(role_enum, nullable=False)
    department = db.Column(db.String(100))
    designation = db.Column(db.String(100))
    employment_type = db.Column(db.String(30), default='FULL_TIME')
    joining_date = db.Column(db.Date, nullable=False)
    status = db.Column(status_enum, nullable=False, default=StaffStatus.ACTIVE.value)

    # Compensation defaults used when generating payroll
    basic_salary = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    allowances = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    hra = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    other_allowances = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Bank
    bank_name = db.Column(db.String(100))
    account_number = db.Column(db.String(50))
    ifsc_code = db.Column(db.String(20))

    # Relationships
    user = db.relationship('User', backref=db.backref('staff_profile', uselist=False), lazy=True)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    @staticmethod
    def generate_employee_id(last_employee_id=None, role=None, today=None):
        """`{ROLE_PREFIX}{YY}{seq:04d}`, continuing from the clinic's last issued id."""
        prefix = ROLE_PREFIXES.get(role, 'EMP')
        year = (today or date.today()).strftime('%y')
        if not last_employee_id:
            return f"{prefix}{year}0001"
        try:
            last_number = int(last_employee_id[-4:])
        except ValueError:
            last_number = 0
        return f"{prefix}{year}{last_number + 1:04d}"

    def summary(self):
        return {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'employee_id': self.employee_id,
            'role': self.role,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'clinic_id': self.clinic_id,
            'user_id': self.user_id,
            'employee_id': self.employee_id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'email': self.email,
            'phone': self.phone,
            'gender': self.gender,
            'date_of_birth': iso(self.date_of_birth),
            'address': self.address,
            'role': self.role,
            'department': self.department,
            'designation': self.designation,
            'employment_type': self.employment_type,
            'joining_date': iso(self.joining_date),
            'status': self.status,
            'basic_salary': as_float(self.basic_salary),
            'allowances': as_float(self.allowances),
            'hra': as_float(self.hra),
            'other_allowances': as_float(self.other_allowances),
            'bank_name': self.bank_name,
            'account_number': self.account_number,
            'ifsc_code': self.ifsc_code,
            'can_login': self.user_id is not None,
            'created_at': iso(self.created_at),
        }

    def __repr__(self):
        return f"<Staff {self.employee_id} - {self.full_name}>"
