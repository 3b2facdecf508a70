# models/attendanceModel.py
from datetime import datetime

from ..addons.enums import AttendanceStatus, values
from ..addons.extensions import db
from ..addons.functions import iso

class StaffAttendance(db.Model):
    __tablename__ = "staff_attendance"
    __table_args__ = (
        db.UniqueConstraint("staff_id", "attendance_date", name="uq_attendance_staff_date"),
    )

    id = db.Column(db.Integer, primary_key=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=False)
    clinic_id = db.Column(db.Integer, db.ForeignKey("clinics.id"), nullable=False)
    attendance_date = db.Column(db.Date, nullable=False)
    clock_in = db.Column(db.String(5), nullable=True)
    clock_out = db.Column(db.String(5), nullable=True)
    total_hours = db.Column(db.Float, default=0.0)

    status = db.Column(
        db.Enum(*values(AttendanceStatus), name="attendance_status_enum"),
        default=AttendanceStatus.PRESENT.value,
        nullable=False
    )
    notes = db.Column(db.Text)
    marked_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    staff = db.relationship("Staff", backref=db.backref("attendance_records", lazy=True))
    marked_by_user = db.relationship("User", foreign_keys=[marked_by])

    def to_dict(self):
        """Convert model to dictionary for JSON responses."""
        return {
            "id": self.id,
            "staff_id": self.staff_id,
            "attendance_date": iso(self.attendance_date),
            "clock_in": self.clock_in,
            "clock_out": self.clock_out,
            "total_hours": self.total_hours,
            "status": self.status,
            "notes": self.notes,
            "marked_by": self.marked_by,
            "staff": self.staff.summary() if self.staff else None,
            "marked_by_user": self.marked_by_user.brief() if self.marked_by_user else None,
        }

    @classmethod
    def find_existing_record(cls, staff_id, attendance_date):
        """Find existing attendance record for staff member and date."""
        return cls.query.filter_by(staff_id=staff_id, attendance_date=attendance_date).first()

    @classmethod
    def upsert(cls, staff_id, attendance_date, clinic_id, create_fields, update_fields):
        """Create the (staff, date) row, or overwrite only `update_fields` on an existing one.

        Adds to the session without committing.
        """
        record = cls.find_existing_record(staff_id, attendance_date)
        if record:
            for field, value in update_fields.items():
                setattr(record, field, value)
            return record, False

        record = cls(
            staff_id=staff_id,
            attendance_date=attendance_date,
            clinic_id=clinic_id,
            **create_fields
        )
        db.session.add(record)
        return record, True
