# models/expenses.py
from ayurclinic.addons.enums import ExpenseCategory, PaymentStatus, values
from ayurclinic.addons.extensions import BaseModel, db
from ayurclinic.addons.functions import as_float, iso

class Expense(BaseModel):
    __tablename__ = 'expenses'
    __table_args__ = (
        db.UniqueConstraint('clinic_id', 'expense_number', name='uq_expense_number'),
    )

    category_enum = db.Enum(*values(ExpenseCategory), name='expense_category')
    status_enum = db.Enum(*values(PaymentStatus), name='expense_payment_status')

    expense_number = db.Column(db.String(30), nullable=False)
    clinic_id = db.Column(db.Integer, db.ForeignKey('clinics.id'), nullable=False)
    category = db.Column(category_enum, nullable=False)
    subcategory = db.Column(db.String(100))
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    description = db.Column(db.Text)
    vendor_name = db.Column(db.String(255))
    payment_method = db.Column(db.String(30))
    expense_date = db.Column(db.DateTime, nullable=False)
    payment_status = db.Column(status_enum, nullable=False, default=PaymentStatus.PAID.value)
    receipt_url = db.Column(db.String(500))

    added_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    approved_by = db.Column(db.Integer, db.ForeignKey('users.id'))

    # Relationships
    added_by_user = db.relationship('User', foreign_keys=[added_by], lazy=True)
    approved_by_user = db.relationship('User', foreign_keys=[approved_by], lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'expense_number': self.expense_number,
            'clinic_id': self.clinic_id,
            'category': self.category,
            'subcategory': self.subcategory,
            'amount': as_float(self.amount),
            'description': self.description,
            'vendor_name': self.vendor_name,
            'payment_method': self.payment_method,
            'expense_date': iso(self.expense_date),
            'payment_status': self.payment_status,
            'receipt_url': self.receipt_url,
            'added_by': self.added_by,
            'approved_by': self.approved_by,
            'added_by_user': self.added_by_user.brief() if self.added_by_user else None,
            'approved_by_user': self.approved_by_user.brief() if self.approved_by_user else None,
            'created_at': iso(self.created_at),
        }
