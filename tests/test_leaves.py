from datetime import date

import pytest

from ayurclinic.addons.extensions import db
from ayurclinic.models import LeaveBalance, StaffAttendance, StaffLeave


LEAVES_URL = '/api/staff/leaves'


def apply_leave(client, headers, staff_id, leave_type='SICK', start='2024-03-01', end='2024-03-03', **extra):
    payload = {
        'staffId': staff_id,
        'leaveType': leave_type,
        'startDate': start,
        'endDate': end,
        'reason': 'Fever',
        **extra,
    }
    return client.post(LEAVES_URL, json=payload, headers=headers)


def review(client, headers, leave_id, action='APPROVED', **extra):
    return client.patch(LEAVES_URL, json={'leaveId': leave_id, 'action': action, **extra}, headers=headers)


def current_balance(staff):
    return LeaveBalance.for_year(staff.id, date.today().year)


class TestApplyLeave:
    def test_total_days_counts_both_ends(self, client, admin_headers, staff):
        resp = apply_leave(client, admin_headers, staff.id, start='2024-03-01', end='2024-03-05')

        assert resp.status_code == 201
        leave = resp.get_json()['leave']
        assert leave['total_days'] == 5
        assert leave['status'] == 'PENDING'
        assert leave['staff']['employee_id'] == staff.employee_id
        assert leave['staff']['first_name'] == 'Asha'

    def test_single_day_leave(self, client, admin_headers, staff):
        resp = apply_leave(client, admin_headers, staff.id, start='2024-03-01', end='2024-03-01')
        assert resp.get_json()['leave']['total_days'] == 1

    def test_start_after_end_is_rejected(self, client, admin_headers, staff):
        resp = apply_leave(client, admin_headers, staff.id, start='2024-03-05', end='2024-03-01')

        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Invalid date range'

    def test_missing_fields(self, client, admin_headers, staff):
        resp = client.post(LEAVES_URL, json={'staffId': staff.id}, headers=admin_headers)

        assert resp.status_code == 400
        assert resp.get_json() == {'status': 400, 'error': 'Missing required fields'}

    def test_unknown_leave_type(self, client, admin_headers, staff):
        resp = apply_leave(client, admin_headers, staff.id, leave_type='SABBATICAL')
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Invalid leave type'

    def test_unknown_staff(self, client, admin_headers, clinic):
        resp = apply_leave(client, admin_headers, 999)
        assert resp.status_code == 404

    def test_missing_balance(self, client, admin_headers, staff):
        LeaveBalance.query.filter_by(staff_id=staff.id).delete()
        db.session.commit()

        resp = apply_leave(client, admin_headers, staff.id)

        assert resp.status_code == 404
        assert resp.get_json()['error'] == 'Leave balance not found'

    def test_insufficient_balance(self, client, admin_headers, staff):
        resp = apply_leave(client, admin_headers, staff.id, leave_type='SICK', start='2024-03-01', end='2024-03-13')

        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Insufficient sick leave balance'

    def test_exact_balance_is_allowed(self, client, admin_headers, staff):
        resp = apply_leave(client, admin_headers, staff.id, leave_type='EARNED', start='2024-03-01', end='2024-03-15')
        assert resp.status_code == 201

    def test_unpaid_bypasses_balance(self, client, admin_headers, staff):
        balance = current_balance(staff)
        balance.casual_leave_balance = 0
        balance.sick_leave_balance = 0
        db.session.commit()

        resp = apply_leave(client, admin_headers, staff.id, leave_type='UNPAID', start='2024-03-01', end='2024-04-09')

        assert resp.status_code == 201
        assert resp.get_json()['leave']['total_days'] == 40

    def test_overlapping_request_is_rejected(self, client, admin_headers, staff):
        assert apply_leave(client, admin_headers, staff.id, start='2024-03-01', end='2024-03-03').status_code == 201

        resp = apply_leave(client, admin_headers, staff.id, leave_type='CASUAL', start='2024-03-03', end='2024-03-04')

        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Overlapping leave request exists'
        assert StaffLeave.query.filter_by(staff_id=staff.id).count() == 1

    def test_adjacent_ranges_do_not_overlap(self, client, admin_headers, staff):
        apply_leave(client, admin_headers, staff.id, start='2024-03-01', end='2024-03-03')
        resp = apply_leave(client, admin_headers, staff.id, start='2024-03-04', end='2024-03-05')
        assert resp.status_code == 201

    def test_rejected_leave_does_not_block(self, client, admin_headers, staff):
        first = apply_leave(client, admin_headers, staff.id).get_json()['leave']
        review(client, admin_headers, first['id'], 'REJECTED')

        resp = apply_leave(client, admin_headers, staff.id)
        assert resp.status_code == 201


class TestReviewLeave:
    def test_approve_sick_leave_updates_balance(self, client, admin_headers, admin, staff):
        leave = apply_leave(client, admin_headers, staff.id, leave_type='SICK').get_json()['leave']

        resp = review(client, admin_headers, leave['id'], reviewNotes='Get well soon')

        assert resp.status_code == 200
        body = resp.get_json()
        assert body['message'] == 'Leave approved successfully'
        assert body['leave']['status'] == 'APPROVED'
        assert body['leave']['reviewed_by'] == admin.id
        assert body['leave']['review_notes'] == 'Get well soon'
        assert body['leave']['reviewed_date'] is not None

        balance = current_balance(staff)
        assert float(balance.sick_leave_used) == 3
        assert float(balance.sick_leave_balance) == 9
        assert float(balance.casual_leave_balance) == 12
        assert float(balance.earned_leave_balance) == 15

    def test_approval_marks_each_day_as_leave(self, client, admin_headers, admin, staff):
        leave = apply_leave(client, admin_headers, staff.id, start='2024-03-01', end='2024-03-03').get_json()['leave']

        review(client, admin_headers, leave['id'])

        rows = StaffAttendance.query.filter_by(staff_id=staff.id).order_by(StaffAttendance.attendance_date).all()
        assert [row.attendance_date for row in rows] == [date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 3)]
        assert {row.status for row in rows} == {'LEAVE'}
        assert {row.notes for row in rows} == {'SICK leave'}
        assert {row.marked_by for row in rows} == {admin.id}
        assert {row.clinic_id for row in rows} == {staff.clinic_id}

    def test_second_review_is_rejected(self, client, admin_headers, staff):
        leave = apply_leave(client, admin_headers, staff.id).get_json()['leave']
        review(client, admin_headers, leave['id'])

        resp = review(client, admin_headers, leave['id'])

        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Leave already processed'
        assert float(current_balance(staff).sick_leave_used) == 3
        assert StaffAttendance.query.filter_by(staff_id=staff.id).count() == 3

    def test_losing_a_concurrent_review_writes_nothing(self, client, admin_headers, staff):
        leave = apply_leave(client, admin_headers, staff.id).get_json()['leave']
        # this session still holds the leave as PENDING while another reviewer rejects it
        held = db.session.get(StaffLeave, leave['id'])
        assert held.status == 'PENDING'
        StaffLeave.query.filter_by(id=leave['id']).update({'status': 'REJECTED'}, synchronize_session=False)

        resp = review(client, admin_headers, leave['id'])

        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Leave already processed'
        assert float(current_balance(staff).sick_leave_used) == 0
        assert StaffAttendance.query.count() == 0

    def test_non_numeric_reviewer_is_rejected(self, client, admin_headers, staff):
        leave = apply_leave(client, admin_headers, staff.id).get_json()['leave']

        resp = review(client, admin_headers, leave['id'], reviewedBy='bob')

        assert resp.status_code == 400
        assert resp.get_json()['status'] == 400
        assert resp.get_json()['error'].startswith('Invalid reviewedBy')
        assert db.session.get(StaffLeave, leave['id']).status == 'PENDING'

    def test_approve_unpaid_keeps_balance(self, client, admin_headers, staff):
        leave = apply_leave(client, admin_headers, staff.id, leave_type='UNPAID').get_json()['leave']

        review(client, admin_headers, leave['id'])

        balance = current_balance(staff)
        assert float(balance.sick_leave_balance) == 12
        assert float(balance.casual_leave_balance) == 12
        assert float(balance.earned_leave_balance) == 15
        assert StaffAttendance.query.filter_by(staff_id=staff.id, status='LEAVE').count() == 3

    def test_approval_overwrites_only_status_and_notes(self, client, admin_headers, staff):
        existing = StaffAttendance(
            staff_id=staff.id,
            clinic_id=staff.clinic_id,
            attendance_date=date(2024, 3, 2),
            clock_in='09:00',
            clock_out='13:00',
            total_hours=4.0,
            status='PRESENT',
            notes='Morning shift',
        )
        db.session.add(existing)
        db.session.commit()
        leave = apply_leave(client, admin_headers, staff.id).get_json()['leave']

        review(client, admin_headers, leave['id'])

        row = StaffAttendance.find_existing_record(staff.id, date(2024, 3, 2))
        assert row.status == 'LEAVE'
        assert row.notes == 'SICK leave'
        assert row.clock_in == '09:00'
        assert row.total_hours == 4.0
        assert row.marked_by is None
        assert StaffAttendance.query.filter_by(staff_id=staff.id).count() == 3

    def test_reject_has_no_side_effects(self, client, admin_headers, staff):
        leave = apply_leave(client, admin_headers, staff.id).get_json()['leave']

        resp = review(client, admin_headers, leave['id'], 'REJECTED', reviewNotes='Short staffed')

        assert resp.get_json()['message'] == 'Leave rejected successfully'
        assert resp.get_json()['leave']['status'] == 'REJECTED'
        assert float(current_balance(staff).sick_leave_used) == 0
        assert StaffAttendance.query.count() == 0

    @pytest.mark.parametrize('payload, error', [
        ({'action': 'APPROVED'}, 'Leave ID and action are required'),
        ({'leaveId': 1}, 'Leave ID and action are required'),
        ({'leaveId': 1, 'action': 'CANCELLED'}, 'Invalid action'),
    ])
    def test_invalid_review_requests(self, client, admin_headers, staff, payload, error):
        resp = client.patch(LEAVES_URL, json=payload, headers=admin_headers)

        assert resp.status_code == 400
        assert resp.get_json()['error'] == error

    def test_unknown_leave(self, client, admin_headers, staff):
        resp = review(client, admin_headers, 12345)
        assert resp.status_code == 404
        assert resp.get_json()['error'] == 'Leave not found'

    def test_failed_cascade_rolls_back_everything(self, client, admin_headers, staff, monkeypatch):
        leave = apply_leave(client, admin_headers, staff.id).get_json()['leave']
        original = StaffAttendance.upsert.__func__
        calls = []

        def flaky_upsert(cls, *args, **kwargs):
            calls.append(args)
            if len(calls) == 2:
                raise RuntimeError('database went away')
            return original(cls, *args, **kwargs)

        monkeypatch.setattr(StaffAttendance, 'upsert', classmethod(flaky_upsert))

        resp = review(client, admin_headers, leave['id'])

        assert resp.status_code == 500
        assert resp.get_json()['error'] == 'Failed to process leave'
        assert db.session.get(StaffLeave, leave['id']).status == 'PENDING'
        assert float(current_balance(staff).sick_leave_used) == 0
        assert StaffAttendance.query.count() == 0

    def test_review_requires_admin(self, client, staff_headers, admin_headers, staff):
        leave = apply_leave(client, admin_headers, staff.id).get_json()['leave']

        resp = review(client, staff_headers, leave['id'])

        assert resp.status_code == 403


class TestListLeaves:
    def test_filters_and_balance(self, client, admin_headers, staff, staff_factory):
        other = staff_factory(email='ravi@ayurclinic.in', role='NURSE')
        first = apply_leave(client, admin_headers, staff.id, start='2024-03-01', end='2024-03-02').get_json()['leave']
        apply_leave(client, admin_headers, staff.id, leave_type='CASUAL', start='2024-04-01', end='2024-04-01')
        apply_leave(client, admin_headers, other.id, leave_type='CASUAL')
        review(client, admin_headers, first['id'])

        everything = client.get(LEAVES_URL, headers=admin_headers).get_json()
        assert len(everything['leaves']) == 3
        assert everything['leaveBalance'] is None

        own = client.get(f'{LEAVES_URL}?staffId={staff.id}', headers=admin_headers).get_json()
        assert len(own['leaves']) == 2
        assert own['leaveBalance']['sick_leave_balance'] == 10.0

        approved = client.get(f'{LEAVES_URL}?status=APPROVED', headers=admin_headers).get_json()
        assert [leave['id'] for leave in approved['leaves']] == [first['id']]
        assert approved['leaves'][0]['reviewed_by_user']['name'] == 'Clinic Admin'

        casual = client.get(f'{LEAVES_URL}?leaveType=CASUAL&status=ALL', headers=admin_headers).get_json()
        assert {leave['leave_type'] for leave in casual['leaves']} == {'CASUAL'}
        assert len(casual['leaves']) == 2

    def test_newest_first(self, client, admin_headers, staff):
        first = apply_leave(client, admin_headers, staff.id, start='2024-03-01', end='2024-03-01').get_json()['leave']
        second = apply_leave(client, admin_headers, staff.id, start='2024-05-01', end='2024-05-01').get_json()['leave']

        leaves = client.get(LEAVES_URL, headers=admin_headers).get_json()['leaves']

        assert [leave['id'] for leave in leaves] == [second['id'], first['id']]


class TestLeaveTenancy:
    def test_requires_token(self, client):
        resp = client.get(LEAVES_URL)
        assert resp.status_code == 401

    def test_foreign_clinic_id_is_forbidden(self, client, admin_headers, other_clinic, staff):
        resp = client.get(f'{LEAVES_URL}?clinicId={other_clinic.id}', headers=admin_headers)
        assert resp.status_code == 403

    def test_matching_clinic_id_is_accepted(self, client, admin_headers, clinic, staff):
        resp = client.get(f'{LEAVES_URL}?clinicId={clinic.id}', headers=admin_headers)
        assert resp.status_code == 200

    def test_other_clinic_cannot_see_or_review(self, client, admin_headers, other_admin_headers, staff):
        leave = apply_leave(client, admin_headers, staff.id).get_json()['leave']

        assert client.get(LEAVES_URL, headers=other_admin_headers).get_json()['leaves'] == []
        assert review(client, other_admin_headers, leave['id']).status_code == 404
        assert apply_leave(client, other_admin_headers, staff.id, start='2024-06-01', end='2024-06-01').status_code == 404
