# controllers/billing/expenses.py
import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from flask_openapi3 import APIBlueprint, Tag
from flask_jwt_extended import jwt_required
from pydantic import BaseModel, Field

from ...addons.enums import ExpenseCategory, PaymentStatus, Role, values
from ...addons.exceptions import ApiError, ValidationError
from ...addons.extensions import db
from ...addons.functions import (
    as_float,
    error_response,
    jsonifyFormat,
    next_sequence_number,
    paginate_args,
    parse_date,
    parse_datetime,
    to_decimal,
)
from ...addons.tenancy import resolve_actor_id, resolve_clinic_id, roles_required
from ...models import Expense

logger = logging.getLogger(__name__)

expense_tag = Tag(name="Expenses", description="Clinic expense ledger")
expense_bp = APIBlueprint('expenses', __name__, url_prefix='/api/billing/expenses', abp_tags=[expense_tag])

EXPENSE_PREFIX = 'EXP'

class ExpenseQuery(BaseModel):
    category: Optional[str] = Field(None, description="Expense category or ALL")
    status: Optional[str] = Field(None, description="PAID, PENDING or ALL")
    fromDate: Optional[str] = Field(None, description="YYYY-MM-DD")
    toDate: Optional[str] = Field(None, description="YYYY-MM-DD")
    page: Optional[int] = Field(1, description="Page number")
    limit: Optional[int] = Field(20, description="Page size")
    clinicId: Optional[int] = Field(None, description="Must match the caller's clinic when given")

class CreateExpenseSchema(BaseModel):
    category: Optional[str] = Field(None, description="Required: " + ", ".join(values(ExpenseCategory)))
    amount: Optional[float] = Field(None, description="Required, must be positive")
    expenseDate: Optional[str] = Field(None, description="ISO date or datetime (required)")
    subcategory: Optional[str] = None
    description: Optional[str] = None
    vendorName: Optional[str] = None
    paymentMethod: Optional[str] = None
    paymentStatus: Optional[str] = Field(None, description="PAID (default) or PENDING")
    receiptUrl: Optional[str] = None
    addedBy: Optional[int] = Field(None, description="Defaults to the caller; also recorded as approver")
    clinicId: Optional[int] = Field(None, description="Must match the caller's clinic when given")


def expense_stats(clinic_id):
    def total(status=None):
        query = db.session.query(db.func.count(Expense.id), db.func.sum(Expense.amount)) \
            .filter(Expense.clinic_id == clinic_id)
        if status:
            query = query.filter(Expense.payment_status == status)
        return query.one()

    count, amount = total()
    return {
        'totalExpenses': count or 0,
        'totalAmount': as_float(amount),
        'paidAmount': as_float(total(PaymentStatus.PAID.value)[1]),
        'pendingAmount': as_float(total(PaymentStatus.PENDING.value)[1]),
    }


@expense_bp.get('', security=[{"jwt": []}])
@jwt_required()
def get_expenses(query: ExpenseQuery):
    """List expenses, newest expense date first"""
    try:
        clinic_id = resolve_clinic_id(query.clinicId)
        page, limit = paginate_args(query.page, query.limit, default_limit=20)

        db_query = Expense.for_clinic(clinic_id)
        if query.category and query.category != 'ALL':
            db_query = db_query.filter(Expense.category == query.category)
        if query.status and query.status != 'ALL':
            db_query = db_query.filter(Expense.payment_status == query.status)
        if query.fromDate:
            db_query = db_query.filter(Expense.expense_date >= parse_datetime(query.fromDate, 'fromDate'))
        if query.toDate:
            # inclusive of the whole end day
            end = datetime.combine(parse_date(query.toDate, 'toDate') + timedelta(days=1), datetime.min.time())
            db_query = db_query.filter(Expense.expense_date < end)

        total = db_query.count()
        expenses = db_query.order_by(Expense.expense_date.desc(), Expense.id.desc()) \
            .offset((page - 1) * limit).limit(limit).all()

        return jsonifyFormat({
            'expenses': [expense.to_dict() for expense in expenses],
            'pagination': {
                'total': total,
                'page': page,
                'limit': limit,
                'pages': math.ceil(total / limit),
            },
            'stats': expense_stats(clinic_id),
        }, 200)

    except ApiError as e:
        return jsonifyFormat(e.to_dict(), e.status_code)
    except Exception:
        logger.exception("Error fetching expenses")
        return error_response('Failed to fetch expenses', 500)


@expense_bp.post('', security=[{"jwt": []}])
@jwt_required()
@roles_required(Role.ADMIN.value)
def create_expense(body: CreateExpenseSchema):
    """Record an expense
    The creator is recorded as approver as well.
    """
    try:
        data = body.model_dump(exclude_none=True)
        clinic_id = resolve_clinic_id(data.get('clinicId'))

        if not data.get('category') or not data.get('amount') or not data.get('expenseDate'):
            raise ValidationError('Category, amount, and expense date are required')

        if data['category'] not in values(ExpenseCategory):
            raise ValidationError('Invalid expense category')

        payment_status = data.get('paymentStatus') or PaymentStatus.PAID.value
        if payment_status not in values(PaymentStatus):
            raise ValidationError('Invalid payment status')

        amount = to_decimal(data['amount'])
        if amount <= 0:
            raise ValidationError('Amount must be positive')

        last_expense = Expense.latest_for_clinic(clinic_id, Expense.expense_number.like(f'{EXPENSE_PREFIX}%'))
        expense_number = next_sequence_number(
            EXPENSE_PREFIX, last_expense.expense_number if last_expense else None
        )

        added_by = resolve_actor_id(data.get('addedBy'))
        expense = Expense(
            expense_number=expense_number,
            clinic_id=clinic_id,
            category=data['category'],
            subcategory=data.get('subcategory'),
            amount=amount,
            description=data.get('description'),
            vendor_name=data.get('vendorName'),
            payment_method=data.get('paymentMethod'),
            expense_date=parse_datetime(data['expenseDate'], 'expenseDate'),
            payment_status=payment_status,
            receipt_url=data.get('receiptUrl'),
            added_by=added_by,
            approved_by=added_by,
        )
        db.session.add(expense)
        db.session.commit()

        logger.info(f"Expense {expense_number} recorded: {data['category']} {amount}")
        return jsonifyFormat({'expense': expense.to_dict()}, 201)

    except ApiError as e:
        db.session.rollback()
        return jsonifyFormat(e.to_dict(), e.status_code)
    except Exception:
        db.session.rollback()
        logger.exception("Error creating expense")
        return error_response('Failed to create expense', 500)
