# controllers/attendance/attendance.py
import calendar
import logging
from datetime import date
from typing import List, Optional

from flask_openapi3 import APIBlueprint, Tag
from flask_jwt_extended import jwt_required
from pydantic import BaseModel, Field

from ...addons.enums import AttendanceStatus, values
from ...addons.exceptions import ApiError, NotFoundError, ValidationError
from ...addons.extensions import db
from ...addons.functions import error_response, hours_between, jsonifyFormat, parse_date
from ...addons.tenancy import resolve_actor_id, resolve_clinic_id
from ...models import Staff, StaffAttendance

logger = logging.getLogger(__name__)

attendance_tag = Tag(name="Attendance", description="Daily staff attendance")
attendance_bp = APIBlueprint('attendance', __name__, url_prefix='/api/staff/attendance', abp_tags=[attendance_tag])

# ---------------------- SCHEMAS ---------------------- #
class AttendanceQuery(BaseModel):
    staffId: Optional[int] = Field(None, description="Staff filter")
    month: Optional[int] = Field(None, description="1-12, used together with year")
    year: Optional[int] = Field(None, description="Four digit year")
    fromDate: Optional[str] = Field(None, description="YYYY-MM-DD, used together with toDate")
    toDate: Optional[str] = Field(None, description="YYYY-MM-DD")
    clinicId: Optional[int] = Field(None, description="Must match the caller's clinic when given")

class MarkAttendanceSchema(BaseModel):
    staffId: Optional[int] = Field(None, description="Staff ID (required)")
    attendanceDate: Optional[str] = Field(None, description="YYYY-MM-DD (required)")
    clockIn: Optional[str] = Field(None, description="HH:MM")
    clockOut: Optional[str] = Field(None, description="HH:MM")
    status: Optional[str] = Field(None, description="PRESENT, ABSENT, HALF_DAY, LEAVE or LATE")
    notes: Optional[str] = Field(None, description="Notes")
    markedBy: Optional[int] = Field(None, description="Defaults to the caller")
    clinicId: Optional[int] = Field(None, description="Must match the caller's clinic when given")

class AttendanceRecordSchema(BaseModel):
    staffId: Optional[int] = Field(None, description="Staff ID (required)")
    clockIn: Optional[str] = Field(None, description="HH:MM")
    clockOut: Optional[str] = Field(None, description="HH:MM")
    status: Optional[str] = Field(None, description="Defaults to PRESENT for new rows")
    notes: Optional[str] = None

class BulkAttendanceSchema(BaseModel):
    date: Optional[str] = Field(None, description="YYYY-MM-DD (required)")
    attendanceRecords: Optional[List[AttendanceRecordSchema]] = Field(None, description="One entry per staff member")
    markedBy: Optional[int] = Field(None, description="Defaults to the caller")
    clinicId: Optional[int] = Field(None, description="Must match the caller's clinic when given")


def _month_range(month, year):
    if month < 1 or month > 12:
        raise ValidationError('Month must be between 1 and 12')
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def _check_status(status):
    if status and status not in values(AttendanceStatus):
        raise ValidationError('Invalid attendance status')


def _attendance_fields(record):
    """Clock and status fields shared by single and bulk marking."""
    _check_status(record.get('status'))
    fields = {
        'clock_in': record.get('clockIn'),
        'clock_out': record.get('clockOut'),
        'total_hours': hours_between(record.get('clockIn'), record.get('clockOut')),
        'notes': record.get('notes'),
    }
    if record.get('status'):
        fields['status'] = record['status']
    return fields


def attendance_summary(records):
    summary = {
        'totalDays': len(records),
        'present': 0,
        'absent': 0,
        'halfDay': 0,
        'leave': 0,
        'totalHours': 0.0,
    }
    keys = {
        AttendanceStatus.PRESENT.value: 'present',
        AttendanceStatus.ABSENT.value: 'absent',
        AttendanceStatus.HALF_DAY.value: 'halfDay',
        AttendanceStatus.LEAVE.value: 'leave',
    }
    for record in records:
        if record.status in keys:
            summary[keys[record.status]] += 1
        summary['totalHours'] += record.total_hours or 0
    summary['totalHours'] = round(summary['totalHours'], 2)
    return summary


@attendance_bp.get('', security=[{"jwt": []}])
@jwt_required()
def get_attendance(query: AttendanceQuery):
    """List attendance records
    A summary is included when staffId, month and year are all given.
    """
    try:
        clinic_id = resolve_clinic_id(query.clinicId)

        db_query = StaffAttendance.query.filter(StaffAttendance.clinic_id == clinic_id)
        if query.staffId:
            db_query = db_query.filter(StaffAttendance.staff_id == query.staffId)

        if query.month and query.year:
            start, end = _month_range(query.month, query.year)
            db_query = db_query.filter(StaffAttendance.attendance_date.between(start, end))
        elif query.fromDate and query.toDate:
            start = parse_date(query.fromDate, 'fromDate')
            end = parse_date(query.toDate, 'toDate')
            db_query = db_query.filter(StaffAttendance.attendance_date.between(start, end))

        records = db_query.order_by(StaffAttendance.attendance_date.desc()).all()

        summary = None
        if query.staffId and query.month and query.year:
            summary = attendance_summary(records)

        return jsonifyFormat({
            'attendance': [record.to_dict() for record in records],
            'summary': summary,
        }, 200)

    except ApiError as e:
        return jsonifyFormat(e.to_dict(), e.status_code)
    except Exception:
        logger.exception("Error fetching attendance")
        return error_response('Failed to fetch attendance', 500)


@attendance_bp.post('', security=[{"jwt": []}])
@jwt_required()
def mark_attendance(body: MarkAttendanceSchema):
    """Mark attendance for one staff member and day
    Returns 201 when a record is created and 200 when an existing one is updated.
    """
    try:
        data = body.model_dump(exclude_none=True)
        clinic_id = resolve_clinic_id(data.get('clinicId'))

        if not data.get('staffId') or not data.get('attendanceDate'):
            raise ValidationError('Staff ID and date are required')

        attendance_date = parse_date(data['attendanceDate'], 'attendanceDate')
        staff = Staff.query.filter_by(id=data['staffId'], clinic_id=clinic_id).first()
        if not staff:
            raise NotFoundError('Staff not found')

        fields = _attendance_fields(data)
        create_fields = {'status': AttendanceStatus.PRESENT.value, **fields,
                         'marked_by': resolve_actor_id(data.get('markedBy'))}

        record, created = StaffAttendance.upsert(
            staff.id, attendance_date, clinic_id,
            create_fields=create_fields,
            update_fields=fields,
        )
        db.session.commit()

        return jsonifyFormat({'attendance': record.to_dict()}, 201 if created else 200)

    except ApiError as e:
        db.session.rollback()
        return jsonifyFormat(e.to_dict(), e.status_code)
    except Exception:
        db.session.rollback()
        logger.exception("Error marking attendance")
        return error_response('Failed to mark attendance', 500)


@attendance_bp.patch('', security=[{"jwt": []}])
@jwt_required()
def bulk_mark_attendance(body: BulkAttendanceSchema):
    """Mark attendance for several staff members on one day"""
    try:
        data = body.model_dump(exclude_none=True)
        clinic_id = resolve_clinic_id(data.get('clinicId'))
        records = data.get('attendanceRecords') or []

        if not data.get('date') or not records:
            raise ValidationError('Date and attendance records are required')

        attendance_date = parse_date(data['date'], 'date')
        marked_by = resolve_actor_id(data.get('markedBy'))

        if any(not record.get('staffId') for record in records):
            raise ValidationError('Staff ID is required for every attendance record')

        staff_ids = {record['staffId'] for record in records}
        known = {
            staff.id for staff in
            Staff.query.filter(Staff.clinic_id == clinic_id, Staff.id.in_(staff_ids)).all()
        }
        if staff_ids - known:
            raise NotFoundError('Staff not found')

        for record in records:
            fields = _attendance_fields(record)
            StaffAttendance.upsert(
                record['staffId'], attendance_date, clinic_id,
                create_fields={'status': AttendanceStatus.PRESENT.value, **fields, 'marked_by': marked_by},
                update_fields=fields,
            )
        db.session.commit()

        logger.info(f"Bulk attendance for {attendance_date}: {len(records)} record(s)")
        return jsonifyFormat({
            'message': 'Attendance marked successfully',
            'count': len(records),
        }, 200)

    except ApiError as e:
        db.session.rollback()
        return jsonifyFormat(e.to_dict(), e.status_code)
    except Exception:
        db.session.rollback()
        logger.exception("Error bulk marking attendance")
        return error_response('Failed to mark attendance', 500)
