# controllers/leave/my_leaves.py
import logging
from datetime import date, datetime, timedelta
from typing import Optional

from flask import current_app
from flask_openapi3 import APIBlueprint, Tag
from flask_jwt_extended import jwt_required
from pydantic import BaseModel, Field

from ...addons.enums import LeaveStatus, LeaveType, Role
from ...addons.exceptions import ApiError, NotFoundError, ValidationError
from ...addons.extensions import db
from ...addons.functions import error_response, jsonifyFormat, parse_date
from ...addons.leave_workflow import (
    apply_approval_effects,
    auto_approve_stale_leaves,
    create_leave,
    validate_leave_application,
)
from ...addons.tenancy import current_clinic_id, current_user_id, roles_required
from ...models import LeaveBalance, Staff, StaffLeave

logger = logging.getLogger(__name__)

my_leaves_tag = Tag(name="My Leaves", description="Self-service leave requests for doctors and staff")
my_leaves_bp = APIBlueprint('my_leaves', __name__, url_prefix='/api/staff/my-leaves', abp_tags=[my_leaves_tag])

# Accepted from the self-service form only; stored as SICK
EMERGENCY = 'EMERGENCY'

class MyLeavesQuery(BaseModel):
    status: Optional[str] = Field('ALL', description="PENDING, APPROVED, REJECTED or ALL")

class MyLeaveSchema(BaseModel):
    leaveType: Optional[str] = Field(None, description="SICK, CASUAL, EARNED, UNPAID or EMERGENCY (required)")
    startDate: Optional[str] = Field(None, description="YYYY-MM-DD (required)")
    endDate: Optional[str] = Field(None, description="YYYY-MM-DD (required)")
    reason: Optional[str] = Field(None, description="Reason for leave")


def get_own_staff_profile():
    staff = Staff.query.filter_by(user_id=current_user_id(), clinic_id=current_clinic_id()).first()
    if not staff:
        raise NotFoundError('Staff profile not found')
    return staff


@my_leaves_bp.get('', security=[{"jwt": []}])
@jwt_required()
@roles_required(Role.DOCTOR.value, Role.STAFF.value)
def get_my_leaves(query: MyLeavesQuery):
    """List the caller's own leave requests
    Pending requests older than the auto-approval window are approved first.
    """
    try:
        staff = get_own_staff_profile()
        clinic_id = staff.clinic_id

        hours = current_app.config.get('LEAVE_AUTO_APPROVE_HOURS', 24)
        approved = auto_approve_stale_leaves(
            staff.id, clinic_id, datetime.utcnow() - timedelta(hours=hours), hours
        )
        if approved:
            db.session.commit()
            logger.info(f"Auto-approved {approved} pending leave(s) for staff {staff.id}")

        db_query = StaffLeave.query.filter_by(staff_id=staff.id)
        if query.status and query.status != 'ALL':
            db_query = db_query.filter(StaffLeave.status == query.status)

        leaves = db_query.order_by(StaffLeave.applied_date.desc(), StaffLeave.id.desc()).all()
        balance = LeaveBalance.for_year(staff.id, date.today().year)

        return jsonifyFormat({
            'leaves': [leave.to_dict() for leave in leaves],
            'leaveBalance': balance.to_dict() if balance else None,
        }, 200)

    except ApiError as e:
        db.session.rollback()
        return jsonifyFormat(e.to_dict(), e.status_code)
    except Exception:
        db.session.rollback()
        logger.exception("Error fetching own leaves")
        return error_response('Failed to fetch leaves', 500)


@my_leaves_bp.post('', security=[{"jwt": []}])
@jwt_required()
@roles_required(Role.DOCTOR.value, Role.STAFF.value)
def apply_my_leave(body: MyLeaveSchema):
    """Apply for leave as the logged-in staff member
    EMERGENCY requests are booked against sick leave and approved at once.
    """
    try:
        staff = get_own_staff_profile()
        data = body.model_dump(exclude_none=True)

        if not data.get('leaveType') or not data.get('startDate') or not data.get('endDate'):
            raise ValidationError('Leave type, start date, and end date are required')

        is_emergency = data['leaveType'] == EMERGENCY
        leave_type = LeaveType.SICK.value if is_emergency else data['leaveType']

        start_date = parse_date(data['startDate'], 'startDate')
        end_date = parse_date(data['endDate'], 'endDate')

        total_days, _ = validate_leave_application(
            staff,
            leave_type,
            start_date,
            end_date,
            self_service=True,
            type_label='emergency' if is_emergency else None,
        )

        if is_emergency:
            leave = create_leave(
                staff,
                leave_type,
                start_date,
                end_date,
                total_days,
                data.get('reason') or 'Emergency Leave',
                staff.clinic_id,
                status=LeaveStatus.APPROVED.value,
                reviewed_date=datetime.utcnow(),
                review_notes='Auto-approved (Emergency Leave)',
            )
            db.session.flush()
            apply_approval_effects(leave, staff.clinic_id, attendance_note='Emergency leave')
            message = 'Emergency leave approved automatically'
        else:
            leave = create_leave(
                staff,
                leave_type,
                start_date,
                end_date,
                total_days,
                data.get('reason') or '',
                staff.clinic_id,
                status=LeaveStatus.PENDING.value,
            )
            hours = current_app.config.get('LEAVE_AUTO_APPROVE_HOURS', 24)
            message = f"Leave request submitted. Will auto-approve in {hours} hours if not reviewed."

        db.session.commit()
        logger.info(f"Staff {staff.id} applied for {total_days} day(s) {leave.leave_type} leave ({leave.status})")

        return jsonifyFormat({'leave': leave.to_dict(), 'message': message}, 201)

    except ApiError as e:
        db.session.rollback()
        return jsonifyFormat(e.to_dict(), e.status_code)
    except Exception:
        db.session.rollback()
        logger.exception("Error applying for own leave")
        return error_response('Failed to apply for leave', 500)
