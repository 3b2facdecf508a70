# addons/payroll_calculator.py
from decimal import Decimal

from .functions import money, next_sequence_number, to_decimal

PAYROLL_PREFIX = 'PAY'


class PayrollCalculator:
    """Monthly salary arithmetic for clinic staff"""

    DEFAULT_WORKING_DAYS = 30

    # request key -> Staff attribute holding the stored default
    COMPONENTS = (
        ('basicSalary', 'basic_salary'),
        ('allowances', 'allowances'),
        ('hra', 'hra'),
        ('otherAllowances', 'other_allowances'),
    )

    @classmethod
    def resolve_components(cls, staff, overrides):
        """Pick each salary component from the request, falling back to the staff record.

        A caller value wins only when it is truthy, so an explicit 0 still
        falls back to the stored default.
        """
        components = {}
        for key, attribute in cls.COMPONENTS:
            supplied = overrides.get(key)
            if supplied:
                components[attribute] = money(to_decimal(supplied))
            else:
                components[attribute] = money(to_decimal(getattr(staff, attribute, None)))
        return components

    @classmethod
    def calculate_absence_deduction(cls, gross_salary, total_working_days, days_absent):
        working_days = Decimal(total_working_days or cls.DEFAULT_WORKING_DAYS)
        absent = to_decimal(days_absent or 0)
        return money(Decimal(gross_salary) * absent / working_days)

    @classmethod
    def calculate_payroll(cls, components, total_working_days=None, days_absent=None, other_deductions=None):
        """Calculate gross, deductions and net pay from resolved components"""
        gross_salary = money(sum(components.values(), Decimal('0')))
        absence_deduction = cls.calculate_absence_deduction(gross_salary, total_working_days, days_absent)
        other = money(to_decimal(other_deductions or 0))
        total_deductions = absence_deduction + other
        net_salary = gross_salary - total_deductions

        return {
            **components,
            'gross_salary': gross_salary,
            'absence_deduction': absence_deduction,
            'other_deductions': other,
            'total_deductions': total_deductions,
            'net_salary': net_salary,
        }


def generate_payroll_number(last_payroll_number=None, today=None):
    return next_sequence_number(PAYROLL_PREFIX, last_payroll_number, today)
