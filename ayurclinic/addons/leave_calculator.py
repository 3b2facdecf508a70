from datetime import timedelta

from .enums import LeaveType

# leave type -> (used column, balance column) on LeaveBalance
BALANCE_FIELDS = {
    LeaveType.SICK.value: ('sick_leave_used', 'sick_leave_balance'),
    LeaveType.CASUAL.value: ('casual_leave_used', 'casual_leave_balance'),
    LeaveType.EARNED.value: ('earned_leave_used', 'earned_leave_balance'),
}


def count_leave_days(start_date, end_date):
    """Inclusive number of calendar days; zero or negative when end precedes start."""
    return (end_date - start_date).days + 1


def iter_dates(start_date, end_date):
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)


def is_balance_tracked(leave_type):
    return leave_type in BALANCE_FIELDS
