# controllers/payroll/payroll_management.py
import logging
from datetime import datetime
from typing import Optional

from flask_openapi3 import APIBlueprint, Tag
from flask_jwt_extended import jwt_required
from pydantic import BaseModel, Field

from ...addons.enums import ExpenseCategory, PaymentStatus, Role
from ...addons.exceptions import ApiError, ConflictError, NotFoundError, ValidationError
from ...addons.extensions import db
from ...addons.functions import (
    as_float,
    error_response,
    jsonifyFormat,
    month_name,
    parse_datetime,
    to_decimal,
)
from ...addons.payroll_calculator import PayrollCalculator, generate_payroll_number
from ...addons.tenancy import resolve_actor_id, resolve_clinic_id, roles_required
from ...models import Expense, Payroll, Staff

logger = logging.getLogger(__name__)

payroll_tag = Tag(name="Payroll", description="Monthly payroll generation and payment")
payroll_bp = APIBlueprint('payroll', __name__, url_prefix='/api/staff/payroll', abp_tags=[payroll_tag])

DEFAULT_PAYMENT_METHOD = 'BANK_TRANSFER'

# ---------------------- REQUEST SCHEMAS ---------------------- #
class PayrollQuery(BaseModel):
    staffId: Optional[int] = Field(None, description="Staff filter")
    month: Optional[int] = Field(None, description="1-12")
    year: Optional[int] = Field(None, description="Four digit year")
    status: Optional[str] = Field(None, description="PENDING, PAID or ALL")
    clinicId: Optional[int] = Field(None, description="Must match the caller's clinic when given")

class GeneratePayrollSchema(BaseModel):
    staffId: Optional[int] = Field(None, description="Staff ID (required)")
    month: Optional[int] = Field(None, description="1-12 (required)")
    year: Optional[int] = Field(None, description="Four digit year (required)")
    basicSalary: Optional[float] = Field(None, description="Overrides the staff default when non-zero")
    allowances: Optional[float] = Field(None, description="Overrides the staff default when non-zero")
    hra: Optional[float] = Field(None, description="Overrides the staff default when non-zero")
    otherAllowances: Optional[float] = Field(None, description="Overrides the staff default when non-zero")
    daysPresent: Optional[int] = Field(None, description="Days present")
    daysAbsent: Optional[float] = Field(None, description="Days absent, may be fractional")
    totalWorkingDays: Optional[int] = Field(None, description="Defaults to 30")
    otherDeductions: Optional[float] = Field(None, description="Other deductions")
    notes: Optional[str] = Field(None, description="Notes")
    generatedBy: Optional[int] = Field(None, description="Defaults to the caller")
    clinicId: Optional[int] = Field(None, description="Must match the caller's clinic when given")

class MarkPaidSchema(BaseModel):
    payrollId: Optional[int] = Field(None, description="Payroll ID (required)")
    paymentDate: Optional[str] = Field(None, description="Defaults to now")
    paymentMethod: Optional[str] = Field(None, description="Defaults to BANK_TRANSFER")
    paymentReference: Optional[str] = Field(None, description="Bank or cheque reference")
    paidBy: Optional[int] = Field(None, description="Defaults to the caller")
    addedBy: Optional[int] = Field(None, description="Expense creator, defaults to the caller")
    clinicId: Optional[int] = Field(None, description="Must match the caller's clinic when given")

# ---------------------- RESPONSE SCHEMAS ---------------------- #
class ErrorResponse(BaseModel):
    status: int = Field(..., description="HTTP status code")
    error: str = Field(..., description="Error message")


def payroll_stats(clinic_id):
    """Clinic-wide totals, independent of any list filters."""
    totals = db.session.query(
        db.func.count(Payroll.id),
        db.func.sum(Payroll.gross_salary),
        db.func.sum(Payroll.net_salary),
        db.func.sum(Payroll.total_deductions),
    ).filter(Payroll.clinic_id == clinic_id).one()

    pending = db.session.query(
        db.func.count(Payroll.id),
        db.func.sum(Payroll.net_salary),
    ).filter(
        Payroll.clinic_id == clinic_id,
        Payroll.payment_status == PaymentStatus.PENDING.value,
    ).one()

    return {
        'total': totals[0] or 0,
        'totalGross': as_float(totals[1]),
        'totalNet': as_float(totals[2]),
        'totalDeductions': as_float(totals[3]),
        'pendingAmount': as_float(pending[1]),
        'pendingCount': pending[0] or 0,
    }


# ---------------------- ENDPOINTS ---------------------- #

@payroll_bp.get('', responses={"200": None, "403": ErrorResponse}, security=[{"jwt": []}])
@jwt_required()
def get_payrolls(query: PayrollQuery):
    """List payroll records with clinic-wide statistics"""
    try:
        clinic_id = resolve_clinic_id(query.clinicId)

        db_query = Payroll.for_clinic(clinic_id)
        if query.staffId:
            db_query = db_query.filter(Payroll.staff_id == query.staffId)
        if query.month:
            db_query = db_query.filter(Payroll.month == query.month)
        if query.year:
            db_query = db_query.filter(Payroll.year == query.year)
        if query.status and query.status != 'ALL':
            db_query = db_query.filter(Payroll.payment_status == query.status)

        payrolls = db_query.order_by(Payroll.year.desc(), Payroll.month.desc(), Payroll.id.desc()).all()

        return jsonifyFormat({
            'payrolls': [payroll.to_dict() for payroll in payrolls],
            'stats': payroll_stats(clinic_id),
        }, 200)

    except ApiError as e:
        return jsonifyFormat(e.to_dict(), e.status_code)
    except Exception:
        logger.exception("Error fetching payroll")
        return error_response('Failed to fetch payroll', 500)


@payroll_bp.post('', responses={"201": None, "400": ErrorResponse, "404": ErrorResponse}, security=[{"jwt": []}])
@jwt_required()
@roles_required(Role.ADMIN.value)
def generate_payroll(body: GeneratePayrollSchema):
    """Generate a staff member's payroll for one month
    Salary components fall back to the staff record when not supplied.
    Absence deduction is gross / working days x days absent.
    """
    try:
        data = body.model_dump(exclude_none=True)
        clinic_id = resolve_clinic_id(data.get('clinicId'))

        if not data.get('staffId') or not data.get('month') or not data.get('year'):
            raise ValidationError('Staff ID, month, and year are required')

        staff_id, month, year = data['staffId'], data['month'], data['year']
        if month < 1 or month > 12:
            raise ValidationError('Month must be between 1 and 12')

        existing = Payroll.query.filter_by(
            clinic_id=clinic_id, staff_id=staff_id, month=month, year=year
        ).first()
        if existing:
            raise ConflictError('Payroll already exists for this month')

        staff = Staff.query.filter_by(id=staff_id, clinic_id=clinic_id).first()
        if not staff:
            raise NotFoundError('Staff not found')

        total_working_days = data.get('totalWorkingDays') or PayrollCalculator.DEFAULT_WORKING_DAYS
        if total_working_days <= 0:
            raise ValidationError('Total working days must be positive')
        days_absent = to_decimal(data.get('daysAbsent') or 0)
        other_deductions = to_decimal(data.get('otherDeductions'))
        days_present = data.get('daysPresent') or 0
        if days_absent < 0 or other_deductions < 0 or days_present < 0:
            raise ValidationError('Days and deductions cannot be negative')

        components = PayrollCalculator.resolve_components(staff, data)
        amounts = PayrollCalculator.calculate_payroll(
            components,
            total_working_days=total_working_days,
            days_absent=days_absent,
            other_deductions=other_deductions,
        )

        last_payroll = Payroll.latest_for_clinic(clinic_id)
        payroll_number = generate_payroll_number(last_payroll.payroll_number if last_payroll else None)

        payroll = Payroll(
            payroll_number=payroll_number,
            staff_id=staff.id,
            clinic_id=clinic_id,
            month=month,
            year=year,
            days_present=days_present,
            days_absent=days_absent,
            total_working_days=total_working_days,
            payment_status=PaymentStatus.PENDING.value,
            notes=data.get('notes'),
            generated_by=resolve_actor_id(data.get('generatedBy')),
            **amounts
        )
        db.session.add(payroll)
        db.session.commit()

        logger.info(f"Payroll {payroll_number} generated for staff {staff.id} ({month:02d}/{year}), net {amounts['net_salary']}")
        return jsonifyFormat({'payroll': payroll.to_dict()}, 201)

    except ApiError as e:
        db.session.rollback()
        return jsonifyFormat(e.to_dict(), e.status_code)
    except Exception:
        db.session.rollback()
        logger.exception("Error generating payroll")
        return error_response('Failed to generate payroll', 500)


@payroll_bp.patch('', responses={"200": None, "400": ErrorResponse, "404": ErrorResponse}, security=[{"jwt": []}])
@jwt_required()
@roles_required(Role.ADMIN.value)
def mark_payroll_paid(body: MarkPaidSchema):
    """Mark a payroll as paid and book the salary expense
    The status change and the SALARY expense are committed together.
    """
    try:
        data = body.model_dump(exclude_none=True)
        clinic_id = resolve_clinic_id(data.get('clinicId'))

        if not data.get('payrollId'):
            raise ValidationError('Payroll ID is required')

        payroll = Payroll.query.filter_by(id=data['payrollId'], clinic_id=clinic_id).first()
        if not payroll:
            raise NotFoundError('Payroll not found')

        if payroll.payment_status == PaymentStatus.PAID.value:
            raise ConflictError('Payroll already paid')

        payment_date = parse_datetime(data.get('paymentDate'), 'paymentDate') or datetime.utcnow()
        payment_method = data.get('paymentMethod') or DEFAULT_PAYMENT_METHOD

        updated = Payroll.query.filter_by(
            id=payroll.id, payment_status=PaymentStatus.PENDING.value
        ).update({
            'payment_status': PaymentStatus.PAID.value,
            'payment_date': payment_date,
            'payment_method': payment_method,
            'payment_reference': data.get('paymentReference'),
            'paid_by': resolve_actor_id(data.get('paidBy')),
        }, synchronize_session='fetch')
        if not updated:
            raise ConflictError('Payroll already paid')

        staff = payroll.staff
        added_by = resolve_actor_id(data.get('addedBy'))
        expense = Expense(
            expense_number=f"SAL-{payroll.payroll_number}",
            clinic_id=clinic_id,
            category=ExpenseCategory.SALARY.value,
            subcategory=f"{staff.role} Salary",
            amount=payroll.net_salary,
            description=f"Salary for {staff.first_name} {staff.last_name} - {month_name(payroll.month)} {payroll.year}",
            vendor_name=staff.full_name,
            payment_method=payment_method,
            expense_date=payment_date,
            payment_status=PaymentStatus.PAID.value,
            added_by=added_by,
            approved_by=added_by,
        )
        db.session.add(expense)
        db.session.commit()

        logger.info(f"Payroll {payroll.payroll_number} marked paid; expense {expense.expense_number} recorded")
        return jsonifyFormat({
            'payroll': payroll.to_dict(),
            'message': 'Payroll marked as paid successfully',
        }, 200)

    except ApiError as e:
        db.session.rollback()
        return jsonifyFormat(e.to_dict(), e.status_code)
    except Exception:
        db.session.rollback()
        logger.exception("Error updating payroll")
        return error_response('Failed to update payroll', 500)
