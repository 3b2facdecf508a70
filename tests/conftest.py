"""
Ayurclinic API - Test Configuration

Pytest fixtures: an app bound to in-memory SQLite, a seeded clinic with an
administrator and one staff member, and bearer-token headers.
"""

from datetime import date
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token

from ayurclinic import create_app
from ayurclinic.addons.extensions import db
from ayurclinic.models import Clinic, LeaveBalance, Staff, User


TEST_CONFIG = {
    'TESTING': True,
    'ENVIRONMENT': 'Testing',
    'SQLALCHEMY_DATABASE_URI': 'sqlite://',
    'SQLALCHEMY_ENGINE_OPTIONS': {},
    'SKIP_DB_BOOTSTRAP': True,
    'LOG_FILE': '',
    'SECRET_KEY': 'test-secret-key-with-enough-length-for-hs256',
    'JWT_SECRET_KEY': 'test-jwt-secret-key-with-enough-length-for-hs256',
    'LEAVE_AUTO_APPROVE_HOURS': 24,
}


@pytest.fixture
def app():
    """Application with fresh tables for each test."""
    app = create_app(dict(TEST_CONFIG))
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def clinic(app):
    clinic = Clinic(name="Main Clinic", code="MAIN", status="Active")
    db.session.add(clinic)
    db.session.commit()
    return clinic


@pytest.fixture
def other_clinic(app):
    clinic = Clinic(name="Branch Clinic", code="BRANCH", status="Active")
    db.session.add(clinic)
    db.session.commit()
    return clinic


def make_user(clinic, email, role='ADMIN', name='Clinic Admin', password='secret123'):
    user = User(email=email, name=name, role=role, clinic_id=clinic.id, is_active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


def make_staff(clinic, email='asha@ayurclinic.in', role='THERAPIST', user=None, **salary):
    staff = Staff(
        clinic_id=clinic.id,
        user_id=user.id if user else None,
        employee_id=Staff.generate_employee_id(None, role),
        first_name='Asha',
        last_name='Menon',
        email=email,
        phone='9876543210',
        role=role,
        joining_date=date(2023, 1, 2),
        basic_salary=salary.get('basic_salary', Decimal('20000')),
        allowances=salary.get('allowances', Decimal('2000')),
        hra=salary.get('hra', Decimal('1000')),
        other_allowances=salary.get('other_allowances', Decimal('0')),
    )
    db.session.add(staff)
    db.session.flush()
    db.session.add(LeaveBalance(staff_id=staff.id, clinic_id=clinic.id, year=date.today().year))
    db.session.commit()
    return staff


def auth_headers(user):
    token = create_access_token(identity=str(user.id), additional_claims=user.token_claims())
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin(clinic):
    return make_user(clinic, 'admin@ayurclinic.in')


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def staff_user(clinic):
    return make_user(clinic, 'asha@ayurclinic.in', role='STAFF', name='Asha Menon')


@pytest.fixture
def staff(clinic, staff_user):
    return make_staff(clinic, user=staff_user)


@pytest.fixture
def staff_headers(staff_user):
    return auth_headers(staff_user)


@pytest.fixture
def staff_factory(clinic):
    """Create extra staff members in the main clinic."""
    return lambda **kwargs: make_staff(clinic, **kwargs)


@pytest.fixture
def other_admin_headers(other_clinic):
    return auth_headers(make_user(other_clinic, 'admin@branch.ayurclinic.in'))
