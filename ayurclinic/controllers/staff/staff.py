# controllers/staff/staff.py
import logging
import math
from datetime import date
from typing import Optional

from flask_openapi3 import APIBlueprint, Tag
from flask_jwt_extended import jwt_required
from pydantic import BaseModel, Field

from ...addons.enums import Role, StaffRole, StaffStatus, values
from ...addons.exceptions import ApiError, ConflictError, NotFoundError, ValidationError
from ...addons.extensions import db
from ...addons.functions import (
    as_float,
    check_email,
    error_response,
    jsonifyFormat,
    missing_fields,
    paginate_args,
    parse_date,
    to_decimal,
)
from ...addons.tenancy import resolve_clinic_id, roles_required
from ...models import LeaveBalance, Payroll, Staff, StaffAttendance, StaffLeave, User

logger = logging.getLogger(__name__)

staff_tag = Tag(name="Staff", description="Clinic staff directory")
staff_bp = APIBlueprint('staff', __name__, url_prefix='/api/staff', abp_tags=[staff_tag])

REQUIRED_FIELDS = ['firstName', 'lastName', 'email', 'phone', 'role', 'joiningDate', 'basicSalary']

# ---------------------- SCHEMAS ---------------------- #
class StaffQuery(BaseModel):
    role: Optional[str] = Field(None, description="Staff role or ALL")
    status: Optional[str] = Field(None, description="ACTIVE, INACTIVE, ON_LEAVE or ALL")
    search: Optional[str] = Field(None, description="Matches name, email, phone or employee ID")
    page: Optional[int] = Field(1, description="Page number")
    limit: Optional[int] = Field(20, description="Page size")

class StaffPath(BaseModel):
    staff_id: int = Field(..., description="Staff ID")

class CreateStaffSchema(BaseModel):
    firstName: Optional[str] = Field(None, description="Required")
    lastName: Optional[str] = Field(None, description="Required")
    email: Optional[str] = Field(None, description="Required, unique within the clinic")
    phone: Optional[str] = Field(None, description="Required")
    role: Optional[str] = Field(None, description="Required: " + ", ".join(values(StaffRole)))
    joiningDate: Optional[str] = Field(None, description="YYYY-MM-DD (required)")
    basicSalary: Optional[float] = Field(None, description="Required, may be 0")
    allowances: Optional[float] = None
    hra: Optional[float] = None
    otherAllowances: Optional[float] = None
    gender: Optional[str] = None
    dateOfBirth: Optional[str] = Field(None, description="YYYY-MM-DD")
    address: Optional[str] = None
    department: Optional[str] = None
    designation: Optional[str] = None
    employmentType: Optional[str] = Field(None, description="Defaults to FULL_TIME")
    bankName: Optional[str] = None
    accountNumber: Optional[str] = None
    ifscCode: Optional[str] = None
    canLogin: Optional[bool] = Field(False, description="Create a login for this staff member")
    userPassword: Optional[str] = Field(None, description="At least 6 characters when canLogin is set")
    clinicId: Optional[int] = Field(None, description="Must match the caller's clinic when given")


def staff_stats(clinic_id):
    by_status = db.session.query(Staff.status, db.func.count(Staff.id)).filter(
        Staff.clinic_id == clinic_id
    ).group_by(Staff.status).all()

    by_role = db.session.query(Staff.role, db.func.count(Staff.id)).filter(
        Staff.clinic_id == clinic_id, Staff.status == StaffStatus.ACTIVE.value
    ).group_by(Staff.role).all()

    basic, allowances = db.session.query(
        db.func.sum(Staff.basic_salary), db.func.sum(Staff.allowances)
    ).filter(Staff.clinic_id == clinic_id, Staff.status == StaffStatus.ACTIVE.value).one()

    return {
        'byStatus': [{'status': status, 'count': count} for status, count in by_status],
        'byRole': [{'role': role, 'count': count} for role, count in by_role],
        'totalSalary': as_float(basic) + as_float(allowances),
    }


def _login_for_new_staff(data, email, clinic_id):
    """Reuse or create the user account a staff member logs in with."""
    existing = User.query.filter_by(email=email).first()
    if existing:
        if existing.clinic_id != clinic_id:
            raise ConflictError('Email is already registered to another clinic')
        return existing

    user = User(
        email=email,
        name=f"{data['firstName']} {data['lastName']}".strip(),
        role=Role.DOCTOR.value if data['role'] == StaffRole.DOCTOR.value else Role.STAFF.value,
        clinic_id=clinic_id,
        is_active=True,
    )
    user.set_password(data['userPassword'])
    db.session.add(user)
    db.session.flush()
    return user


@staff_bp.get('', security=[{"jwt": []}])
@jwt_required()
def list_staff(query: StaffQuery):
    """List staff with pagination and headcount statistics"""
    try:
        clinic_id = resolve_clinic_id()
        page, limit = paginate_args(query.page, query.limit, default_limit=20)

        db_query = Staff.for_clinic(clinic_id)
        if query.role and query.role != 'ALL':
            db_query = db_query.filter(Staff.role == query.role)
        if query.status and query.status != 'ALL':
            db_query = db_query.filter(Staff.status == query.status)
        if query.search:
            term = f"%{query.search}%"
            db_query = db_query.filter(db.or_(
                Staff.first_name.ilike(term),
                Staff.last_name.ilike(term),
                Staff.email.ilike(term),
                Staff.phone.like(term),
                Staff.employee_id.ilike(term),
            ))

        total = db_query.count()
        staff = db_query.order_by(Staff.created_at.desc(), Staff.id.desc()) \
            .offset((page - 1) * limit).limit(limit).all()

        return jsonifyFormat({
            'staff': [member.to_dict() for member in staff],
            'pagination': {
                'total': total,
                'page': page,
                'limit': limit,
                'pages': math.ceil(total / limit),
            },
            'stats': staff_stats(clinic_id),
        }, 200)

    except ApiError as e:
        return jsonifyFormat(e.to_dict(), e.status_code)
    except Exception:
        logger.exception("Error fetching staff")
        return error_response('Failed to fetch staff', 500)


@staff_bp.post('', security=[{"jwt": []}])
@jwt_required()
@roles_required(Role.ADMIN.value)
def create_staff(body: CreateStaffSchema):
    """Create a staff member
    Issues the employee ID and opens the current year's leave balance.
    """
    try:
        data = body.model_dump(exclude_none=True)
        clinic_id = resolve_clinic_id(data.get('clinicId'))

        missing = [field for field in missing_fields(data, REQUIRED_FIELDS)
                   if not (field == 'basicSalary' and data.get(field) == 0)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        if data['role'] not in values(StaffRole):
            raise ValidationError('Invalid staff role')

        email = data['email'].lower().strip()
        if not check_email(email):
            raise ValidationError('Invalid email format')

        can_login = bool(data.get('canLogin'))
        if can_login and len(data.get('userPassword') or '') < 6:
            raise ValidationError('Password must be at least 6 characters when login is enabled')

        if Staff.query.filter_by(email=email, clinic_id=clinic_id).first():
            raise ConflictError('A staff member with this email already exists')

        last_staff = Staff.latest_for_clinic(clinic_id)
        employee_id = Staff.generate_employee_id(last_staff.employee_id if last_staff else None, data['role'])

        user = _login_for_new_staff(data, email, clinic_id) if can_login else None

        staff = Staff(
            clinic_id=clinic_id,
            user_id=user.id if user else None,
            employee_id=employee_id,
            first_name=data['firstName'],
            last_name=data['lastName'],
            email=email,
            phone=data['phone'],
            gender=data.get('gender'),
            date_of_birth=parse_date(data['dateOfBirth'], 'dateOfBirth') if data.get('dateOfBirth') else None,
            address=data.get('address'),
            role=data['role'],
            department=data.get('department'),
            designation=data.get('designation'),
            employment_type=data.get('employmentType') or 'FULL_TIME',
            joining_date=parse_date(data['joiningDate'], 'joiningDate'),
            status=StaffStatus.ACTIVE.value,
            basic_salary=to_decimal(data.get('basicSalary')),
            allowances=to_decimal(data.get('allowances')),
            hra=to_decimal(data.get('hra')),
            other_allowances=to_decimal(data.get('otherAllowances')),
            bank_name=data.get('bankName'),
            account_number=data.get('accountNumber'),
            ifsc_code=data.get('ifscCode'),
        )
        db.session.add(staff)
        db.session.flush()

        db.session.add(LeaveBalance(staff_id=staff.id, clinic_id=clinic_id, year=date.today().year))
        db.session.commit()

        logger.info(f"Staff {employee_id} created for clinic {clinic_id}")
        return jsonifyFormat({'staff': staff.to_dict()}, 201)

    except ApiError as e:
        db.session.rollback()
        return jsonifyFormat(e.to_dict(), e.status_code)
    except Exception:
        db.session.rollback()
        logger.exception("Error creating staff")
        return error_response('Failed to create staff member', 500)


@staff_bp.get('/<int:staff_id>', security=[{"jwt": []}])
@jwt_required()
def get_staff(path: StaffPath):
    """Get one staff member with the current leave balance"""
    try:
        clinic_id = resolve_clinic_id()
        staff = Staff.query.filter_by(id=path.staff_id, clinic_id=clinic_id).first()
        if not staff:
            raise NotFoundError('Staff not found')

        balance = LeaveBalance.for_year(staff.id, date.today().year)
        return jsonifyFormat({
            'staff': staff.to_dict(),
            'leaveBalance': balance.to_dict() if balance else None,
        }, 200)

    except ApiError as e:
        return jsonifyFormat(e.to_dict(), e.status_code)
    except Exception:
        logger.exception("Error fetching staff member")
        return error_response('Failed to fetch staff member', 500)


@staff_bp.delete('/<int:staff_id>', security=[{"jwt": []}])
@jwt_required()
@roles_required(Role.ADMIN.value)
def delete_staff(path: StaffPath):
    """Delete a staff member and every record that belongs to them"""
    try:
        clinic_id = resolve_clinic_id()
        staff = Staff.query.filter_by(id=path.staff_id, clinic_id=clinic_id).first()
        if not staff:
            raise NotFoundError('Staff not found')

        user_id = staff.user_id
        for model in (StaffAttendance, StaffLeave, LeaveBalance, Payroll):
            model.query.filter_by(staff_id=staff.id).delete(synchronize_session=False)
        db.session.delete(staff)
        db.session.flush()

        if user_id and not Staff.query.filter_by(user_id=user_id).count():
            User.query.filter_by(id=user_id).delete(synchronize_session=False)

        db.session.commit()
        logger.info(f"Staff {path.staff_id} deleted from clinic {clinic_id}")
        return jsonifyFormat({'message': 'Staff deleted successfully'}, 200)

    except ApiError as e:
        db.session.rollback()
        return jsonifyFormat(e.to_dict(), e.status_code)
    except Exception:
        db.session.rollback()
        logger.exception("Error deleting staff")
        return error_response('Failed to delete staff', 500)
