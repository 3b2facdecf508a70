# controllers/leave/leave_records.py
import logging
from datetime import date
from typing import Optional

from flask_openapi3 import APIBlueprint, Tag
from flask_jwt_extended import jwt_required
from pydantic import BaseModel, Field

from ...addons.enums import LeaveStatus, Role
from ...addons.exceptions import ApiError, NotFoundError, ValidationError
from ...addons.extensions import db
from ...addons.functions import error_response, jsonifyFormat, missing_fields, parse_date
from ...addons.leave_workflow import REVIEW_ACTIONS, create_leave, review_leave, validate_leave_application
from ...addons.tenancy import resolve_actor_id, resolve_clinic_id, roles_required
from ...models import LeaveBalance, Staff, StaffLeave

logger = logging.getLogger(__name__)

leave_tag = Tag(name="Staff Leaves", description="Leave applications, review and balances")
leave_bp = APIBlueprint('leave', __name__, url_prefix='/api/staff/leaves', abp_tags=[leave_tag])

# ---------------------- SCHEMAS ---------------------- #
class LeaveQuery(BaseModel):
    staffId: Optional[int] = Field(None, description="Staff filter; also returns that staff member's balance")
    status: Optional[str] = Field('ALL', description="PENDING, APPROVED, REJECTED or ALL")
    leaveType: Optional[str] = Field(None, description="SICK, CASUAL, EARNED, UNPAID or ALL")
    clinicId: Optional[int] = Field(None, description="Must match the caller's clinic when given")

class ApplyLeaveSchema(BaseModel):
    staffId: Optional[int] = Field(None, description="Staff ID (required)")
    leaveType: Optional[str] = Field(None, description="SICK, CASUAL, EARNED or UNPAID (required)")
    startDate: Optional[str] = Field(None, description="YYYY-MM-DD (required)")
    endDate: Optional[str] = Field(None, description="YYYY-MM-DD (required)")
    reason: Optional[str] = Field(None, description="Reason for leave")
    clinicId: Optional[int] = Field(None, description="Must match the caller's clinic when given")

class ReviewLeaveSchema(BaseModel):
    leaveId: Optional[int] = Field(None, description="Leave request ID (required)")
    action: Optional[str] = Field(None, description="APPROVED or REJECTED (required)")
    reviewNotes: Optional[str] = Field(None, description="Reviewer notes")
    reviewedBy: Optional[int] = Field(None, description="Reviewer user ID, defaults to the caller")
    markedBy: Optional[int] = Field(None, description="Attendance marker user ID, defaults to the caller")
    clinicId: Optional[int] = Field(None, description="Must match the caller's clinic when given")

class ErrorResponse(BaseModel):
    status: int = Field(..., description="HTTP status code")
    error: str = Field(..., description="Error message")


# ---------------------- ENDPOINTS ---------------------- #

@leave_bp.get('', responses={"200": None, "403": ErrorResponse}, security=[{"jwt": []}])
@jwt_required()
def get_leaves(query: LeaveQuery):
    """List leave requests
    Ordered by application date, newest first. Passing staffId adds the
    staff member's leave balance for the current year.
    """
    try:
        clinic_id = resolve_clinic_id(query.clinicId)

        db_query = StaffLeave.for_clinic(clinic_id)

        if query.staffId:
            db_query = db_query.filter(StaffLeave.staff_id == query.staffId)

        if query.status and query.status != 'ALL':
            db_query = db_query.filter(StaffLeave.status == query.status)

        if query.leaveType and query.leaveType != 'ALL':
            db_query = db_query.filter(StaffLeave.leave_type == query.leaveType)

        leaves = db_query.order_by(StaffLeave.applied_date.desc(), StaffLeave.id.desc()).all()

        leave_balance = None
        if query.staffId:
            balance = LeaveBalance.for_year(query.staffId, date.today().year)
            leave_balance = balance.to_dict() if balance else None

        return jsonifyFormat({
            'leaves': [leave.to_dict() for leave in leaves],
            'leaveBalance': leave_balance,
        }, 200)

    except ApiError as e:
        return jsonifyFormat(e.to_dict(), e.status_code)
    except Exception:
        logger.exception("Error fetching leaves")
        return error_response('Failed to fetch leaves', 500)


@leave_bp.post('', responses={"201": None, "400": ErrorResponse, "404": ErrorResponse}, security=[{"jwt": []}])
@jwt_required()
def apply_leave(body: ApplyLeaveSchema):
    """Apply for leave on behalf of a staff member
    Checks the current-year balance and overlapping requests, then stores a
    PENDING request.
    """
    try:
        data = body.model_dump(exclude_none=True)
        clinic_id = resolve_clinic_id(data.get('clinicId'))

        if missing_fields(data, ['staffId', 'leaveType', 'startDate', 'endDate']):
            raise ValidationError('Missing required fields')

        start_date = parse_date(data['startDate'], 'startDate')
        end_date = parse_date(data['endDate'], 'endDate')

        staff = Staff.query.filter_by(id=data['staffId'], clinic_id=clinic_id).first()
        if not staff:
            raise NotFoundError('Staff not found')

        total_days, _ = validate_leave_application(staff, data['leaveType'], start_date, end_date)

        leave = create_leave(
            staff,
            data['leaveType'],
            start_date,
            end_date,
            total_days,
            data.get('reason'),
            clinic_id,
            status=LeaveStatus.PENDING.value,
        )
        db.session.commit()

        logger.info(f"Leave {leave.id} applied for staff {staff.id}: {total_days} day(s) {leave.leave_type}")
        return jsonifyFormat({'leave': leave.to_dict()}, 201)

    except ApiError as e:
        db.session.rollback()
        return jsonifyFormat(e.to_dict(), e.status_code)
    except Exception:
        db.session.rollback()
        logger.exception("Error applying for leave")
        return error_response('Failed to apply for leave', 500)


@leave_bp.patch('', responses={"200": None, "400": ErrorResponse, "404": ErrorResponse}, security=[{"jwt": []}])
@jwt_required()
@roles_required(Role.ADMIN.value)
def review_leave_request(body: ReviewLeaveSchema):
    """Approve or reject a pending leave
    Approval deducts the matching balance (except UNPAID) and marks each day
    of the leave as LEAVE in attendance, all in one transaction.
    """
    try:
        data = body.model_dump(exclude_none=True)
        clinic_id = resolve_clinic_id(data.get('clinicId'))

        if not data.get('leaveId') or not data.get('action'):
            raise ValidationError('Leave ID and action are required')

        action = data['action']
        if action not in REVIEW_ACTIONS:
            raise ValidationError('Invalid action')

        leave = review_leave(
            data['leaveId'],
            action,
            clinic_id,
            review_notes=data.get('reviewNotes'),
            reviewed_by=resolve_actor_id(data.get('reviewedBy')),
            marked_by=resolve_actor_id(data.get('markedBy')),
        )
        db.session.commit()

        return jsonifyFormat({
            'leave': leave.to_dict(),
            'message': f"Leave {action.lower()} successfully",
        }, 200)

    except ApiError as e:
        db.session.rollback()
        return jsonifyFormat(e.to_dict(), e.status_code)
    except Exception:
        db.session.rollback()
        logger.exception("Error processing leave")
        return error_response('Failed to process leave', 500)
