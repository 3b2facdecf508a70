from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Login roles carried in the access token."""

    ADMIN = "ADMIN"
    DOCTOR = "DOCTOR"
    STAFF = "STAFF"


class StaffRole(str, Enum):
    DOCTOR = "DOCTOR"
    RECEPTIONIST = "RECEPTIONIST"
    THERAPIST = "THERAPIST"
    PHARMACIST = "PHARMACIST"
    LAB_TECHNICIAN = "LAB_TECHNICIAN"
    NURSE = "NURSE"
    MANAGER = "MANAGER"
    OTHER = "OTHER"


class StaffStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ON_LEAVE = "ON_LEAVE"


class LeaveType(str, Enum):
    SICK = "SICK"
    CASUAL = "CASUAL"
    EARNED = "EARNED"
    UNPAID = "UNPAID"


class LeaveStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class AttendanceStatus(str, Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    HALF_DAY = "HALF_DAY"
    LEAVE = "LEAVE"
    LATE = "LATE"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"


class ExpenseCategory(str, Enum):
    SALARY = "SALARY"
    RENT = "RENT"
    UTILITIES = "UTILITIES"
    SUPPLIES = "SUPPLIES"
    MEDICINES = "MEDICINES"
    EQUIPMENT = "EQUIPMENT"
    MAINTENANCE = "MAINTENANCE"
    MARKETING = "MARKETING"
    OTHER = "OTHER"


def values(enum_cls):
    """Plain string values of an enum, in declaration order."""
    return [member.value for member in enum_cls]
