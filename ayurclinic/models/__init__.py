from ..addons.extensions import db

# Import all models
from .clinics import Clinic
from .users import User
from .staff import Staff
from .leave_records import StaffLeave, LeaveBalance
from .attendanceModel import StaffAttendance
from .payroll import Payroll
from .expenses import Expense
from .tokenBlacklistModel import TokenBlacklist

__all__ = [
    'db',
    'Clinic',
    'User',
    'Staff',
    'StaffLeave',
    'LeaveBalance',
    'StaffAttendance',
    'Payroll',
    'Expense',
    'TokenBlacklist',
]
