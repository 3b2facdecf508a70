# addons/leave_workflow.py
"""Leave application and review rules shared by the admin and self-service endpoints.

Nothing here commits: callers own the transaction, so a review, its balance
deduction and its attendance rows are written together or not at all.
"""
import logging
from datetime import date, datetime

from .enums import AttendanceStatus, LeaveStatus, LeaveType, values
from .exceptions import ConflictError, NotFoundError, ValidationError
from .extensions import db
from .leave_calculator import count_leave_days, is_balance_tracked, iter_dates
from ..models import LeaveBalance, StaffAttendance, StaffLeave

logger = logging.getLogger(__name__)

REVIEW_ACTIONS = (LeaveStatus.APPROVED.value, LeaveStatus.REJECTED.value)
ACTIVE_STATUSES = (LeaveStatus.PENDING.value, LeaveStatus.APPROVED.value)


def find_overlapping_leave(staff_id, start_date, end_date):
    """First PENDING/APPROVED request of the staff member intersecting [start, end]."""
    return StaffLeave.query.filter(
        StaffLeave.staff_id == staff_id,
        StaffLeave.status.in_(ACTIVE_STATUSES),
        StaffLeave.start_date <= end_date,
        StaffLeave.end_date >= start_date,
    ).first()


def validate_leave_application(staff, leave_type, start_date, end_date, self_service=False, today=None,
                               type_label=None):
    """Check an application against balance and overlap rules.

    Returns ``(total_days, balance)``. Raises ValidationError, NotFoundError or
    ConflictError with the message the client should see.
    """
    today = today or date.today()

    if leave_type not in values(LeaveType):
        raise ValidationError('Invalid leave type')

    if self_service:
        if start_date > end_date:
            raise ValidationError('Start date must be before end date')
        if start_date < today:
            raise ValidationError('Cannot apply leave for past dates')

    total_days = count_leave_days(start_date, end_date)
    if total_days <= 0:
        raise ValidationError('Invalid date range')

    balance = LeaveBalance.for_year(staff.id, today.year)
    if not balance:
        if not self_service:
            raise NotFoundError('Leave balance not found')
        if leave_type != LeaveType.UNPAID.value:
            raise NotFoundError('Leave balance not found. Please contact admin.')

    if is_balance_tracked(leave_type):
        available = balance.available(leave_type)
        if total_days > available:
            message = f"Insufficient {(type_label or leave_type).lower()} leave balance"
            if self_service:
                message += f". Available: {available.normalize():f} days"
            raise ConflictError(message)

    if find_overlapping_leave(staff.id, start_date, end_date):
        if self_service:
            raise ConflictError('You already have a leave request for overlapping dates')
        raise ConflictError('Overlapping leave request exists')

    return total_days, balance


def apply_approval_effects(leave, clinic_id, marked_by=None, attendance_note=None, year=None):
    """Deduct the balance (tracked types only) and mark every day of the leave as LEAVE.

    Returns the number of attendance rows written.
    """
    year = year or date.today().year

    if leave.leave_type != LeaveType.UNPAID.value:
        balance = LeaveBalance.for_year(leave.staff_id, year)
        if balance:
            balance.consume(leave.leave_type, leave.total_days)
        else:
            logger.warning(f"No {year} leave balance for staff {leave.staff_id}; skipping deduction")

    note = attendance_note or f"{leave.leave_type} leave"
    create_fields = {'status': AttendanceStatus.LEAVE.value, 'notes': note}
    if marked_by:
        create_fields['marked_by'] = marked_by

    written = 0
    for day in iter_dates(leave.start_date, leave.end_date):
        StaffAttendance.upsert(
            leave.staff_id,
            day,
            clinic_id,
            create_fields=create_fields,
            update_fields={'status': AttendanceStatus.LEAVE.value, 'notes': note},
        )
        written += 1
    return written


def review_leave(leave_id, action, clinic_id, review_notes=None, reviewed_by=None, marked_by=None):
    """Move a PENDING leave to APPROVED/REJECTED and run the approval cascade.

    The status change is a conditional UPDATE on ``status = 'PENDING'`` so two
    concurrent reviews cannot both succeed.
    """
    leave = StaffLeave.query.filter_by(id=leave_id, clinic_id=clinic_id).first()
    if not leave:
        raise NotFoundError('Leave not found')

    if leave.status != LeaveStatus.PENDING.value:
        raise ConflictError('Leave already processed')

    changes = {
        'status': action,
        'reviewed_date': datetime.utcnow(),
        'review_notes': review_notes,
    }
    if reviewed_by:
        changes['reviewed_by'] = reviewed_by

    updated = StaffLeave.query.filter_by(
        id=leave.id, status=LeaveStatus.PENDING.value
    ).update(changes, synchronize_session='fetch')
    if not updated:
        raise ConflictError('Leave already processed')

    written = 0
    if action == LeaveStatus.APPROVED.value:
        written = apply_approval_effects(leave, clinic_id, marked_by=marked_by)

    logger.info(f"Leave {leave.id} {action.lower()}; {written} attendance rows marked")
    return leave


def auto_approve_stale_leaves(staff_id, clinic_id, older_than, hours):
    """Approve the staff member's PENDING requests applied before `older_than`."""
    stale = StaffLeave.query.filter(
        StaffLeave.staff_id == staff_id,
        StaffLeave.status == LeaveStatus.PENDING.value,
        StaffLeave.applied_date < older_than,
    ).all()

    for leave in stale:
        review_leave(
            leave.id,
            LeaveStatus.APPROVED.value,
            clinic_id,
            review_notes=f"Auto-approved after {hours} hours",
        )
    return len(stale)


def create_leave(staff, leave_type, start_date, end_date, total_days, reason, clinic_id, **extra):
    leave = StaffLeave(
        staff_id=staff.id,
        clinic_id=clinic_id,
        leave_type=leave_type,
        start_date=start_date,
        end_date=end_date,
        total_days=total_days,
        reason=reason,
        **extra
    )
    db.session.add(leave)
    return leave
