from datetime import date

from ayurclinic.addons.extensions import db
from ayurclinic.models import StaffAttendance


ATTENDANCE_URL = '/api/staff/attendance'


def mark(client, headers, staff_id, day='2024-03-04', **extra):
    return client.post(ATTENDANCE_URL, json={'staffId': staff_id, 'attendanceDate': day, **extra}, headers=headers)


def test_mark_creates_then_updates(client, admin_headers, admin, staff):
    created = mark(client, admin_headers, staff.id, clockIn='09:00', clockOut='17:30')

    assert created.status_code == 201
    record = created.get_json()['attendance']
    assert record['status'] == 'PRESENT'
    assert record['total_hours'] == 8.5
    assert record['marked_by'] == admin.id

    updated = mark(client, admin_headers, staff.id, status='HALF_DAY', clockIn='09:00', clockOut='13:00')

    assert updated.status_code == 200
    assert updated.get_json()['attendance']['status'] == 'HALF_DAY'
    assert updated.get_json()['attendance']['total_hours'] == 4.0
    assert StaffAttendance.query.count() == 1


def test_mark_validation(client, admin_headers, staff):
    resp = client.post(ATTENDANCE_URL, json={'staffId': staff.id}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Staff ID and date are required'

    assert mark(client, admin_headers, staff.id, status='ON_BREAK').status_code == 400
    assert mark(client, admin_headers, staff.id, clockIn='9am', clockOut='5pm').status_code == 400
    assert mark(client, admin_headers, 777).status_code == 404


def test_bulk_mark_is_one_upsert_per_staff(client, admin_headers, staff, staff_factory):
    other = staff_factory(email='ravi@ayurclinic.in', role='NURSE')
    mark(client, admin_headers, staff.id, day='2024-03-05', status='ABSENT')

    resp = client.patch(ATTENDANCE_URL, json={
        'date': '2024-03-05',
        'attendanceRecords': [
            {'staffId': staff.id, 'status': 'PRESENT', 'clockIn': '10:00', 'clockOut': '18:00'},
            {'staffId': other.id, 'status': 'LATE', 'clockIn': '11:15', 'clockOut': '18:00'},
        ],
    }, headers=admin_headers)

    assert resp.status_code == 200
    assert resp.get_json() == {'message': 'Attendance marked successfully', 'count': 2}
    rows = {row.staff_id: row for row in StaffAttendance.query.all()}
    assert len(rows) == 2
    assert rows[staff.id].status == 'PRESENT'
    assert rows[other.id].status == 'LATE'
    assert rows[other.id].total_hours == 6.75


def test_bulk_mark_rejects_foreign_staff(client, admin_headers, staff):
    resp = client.patch(ATTENDANCE_URL, json={
        'date': '2024-03-05',
        'attendanceRecords': [{'staffId': staff.id, 'status': 'PRESENT'}, {'staffId': 999, 'status': 'PRESENT'}],
    }, headers=admin_headers)

    assert resp.status_code == 404
    assert StaffAttendance.query.count() == 0


def test_bulk_mark_requires_records(client, admin_headers, staff):
    resp = client.patch(ATTENDANCE_URL, json={'date': '2024-03-05', 'attendanceRecords': []}, headers=admin_headers)

    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Date and attendance records are required'


def test_monthly_summary(client, admin_headers, staff):
    mark(client, admin_headers, staff.id, day='2024-03-01', clockIn='09:00', clockOut='17:00')
    mark(client, admin_headers, staff.id, day='2024-03-02', clockIn='09:00', clockOut='17:00')
    mark(client, admin_headers, staff.id, day='2024-03-03', status='ABSENT')
    mark(client, admin_headers, staff.id, day='2024-03-04', status='HALF_DAY', clockIn='09:00', clockOut='13:00')
    mark(client, admin_headers, staff.id, day='2024-03-05', status='LEAVE')
    mark(client, admin_headers, staff.id, day='2024-04-01')

    resp = client.get(f'{ATTENDANCE_URL}?staffId={staff.id}&month=3&year=2024', headers=admin_headers)

    body = resp.get_json()
    assert [row['attendance_date'] for row in body['attendance']][0] == '2024-03-05'
    assert len(body['attendance']) == 5
    assert body['summary'] == {
        'totalDays': 5,
        'present': 2,
        'absent': 1,
        'halfDay': 1,
        'leave': 1,
        'totalHours': 20.0,
    }


def test_date_range_without_summary(client, admin_headers, staff):
    for day in ('2024-03-01', '2024-03-10', '2024-03-20'):
        mark(client, admin_headers, staff.id, day=day)

    resp = client.get(f'{ATTENDANCE_URL}?fromDate=2024-03-05&toDate=2024-03-20', headers=admin_headers)

    body = resp.get_json()
    assert [row['attendance_date'] for row in body['attendance']] == ['2024-03-20', '2024-03-10']
    assert body['summary'] is None


def test_listing_is_clinic_scoped(client, admin_headers, other_admin_headers, staff):
    db.session.add(StaffAttendance(
        staff_id=staff.id, clinic_id=staff.clinic_id, attendance_date=date(2024, 3, 1), status='PRESENT'
    ))
    db.session.commit()

    assert len(client.get(ATTENDANCE_URL, headers=admin_headers).get_json()['attendance']) == 1
    assert client.get(ATTENDANCE_URL, headers=other_admin_headers).get_json()['attendance'] == []


def test_bulk_mark_accepts_numeric_string_ids(client, admin_headers, staff):
    resp = client.patch(ATTENDANCE_URL, json={
        'date': '2024-03-05',
        'attendanceRecords': [{'staffId': str(staff.id), 'status': 'PRESENT'}],
    }, headers=admin_headers)

    assert resp.status_code == 200
    assert resp.get_json()['count'] == 1
    assert StaffAttendance.query.one().staff_id == staff.id


def test_bulk_mark_rejects_bad_staff_ids(client, admin_headers, staff):
    resp = client.patch(ATTENDANCE_URL, json={
        'date': '2024-03-05',
        'attendanceRecords': [{'staffId': 'abc', 'status': 'PRESENT'}],
    }, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.get_json()['error'].startswith('Invalid attendanceRecords.0.staffId')

    resp = client.patch(ATTENDANCE_URL, json={
        'date': '2024-03-05',
        'attendanceRecords': [{'staffId': staff.id}, {'status': 'PRESENT'}],
    }, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Staff ID is required for every attendance record'
    assert StaffAttendance.query.count() == 0
