"""Shared fixtures: application, controllable clock and model factories."""

from datetime import datetime

import pytest
from flask import g

from trainhub import create_app
from trainhub.extensions import db as _db
from trainhub.models import Course, Enrollment, EnrollmentStatus, User, RoleType
from trainhub.services.group_service import GroupService


class FakeClock:
    """Callable clock whose current time tests can move."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def set(self, moment):
        self.now = moment


@pytest.fixture
def clock():
    # Tuesday 2024-01-09 09:00; the week runs Sun 01-07 .. Sat 01-13
    return FakeClock(datetime(2024, 1, 9, 9, 0))


@pytest.fixture
def app(clock):
    app = create_app('testing')
    app.config['CLOCK'] = clock

    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    @app.before_request
    def resolve_identity_per_request():
        # Requests share the test's app context, so drop the user Flask-Login cached on g
        g.pop('_login_user', None)

    return app.test_client()


@pytest.fixture
def make_user(db):
    counter = {'n': 0}

    def _make_user(role=RoleType.TRAINER, name=None, is_active=True):
        counter['n'] += 1
        user = User(
            name=name or f'{role.title()} {counter["n"]}',
            email=f'{role}{counter["n"]}@example.com',
            role=role,
            is_active=is_active
        )
        user.issue_api_token()
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def trainer(make_user):
    return make_user(RoleType.TRAINER, name='Alice Trainer')


@pytest.fixture
def admin(make_user):
    return make_user(RoleType.ADMIN, name='Root Admin')


@pytest.fixture
def students(make_user):
    return [make_user(RoleType.STUDENT) for _ in range(4)]


@pytest.fixture
def make_course(db):
    def _make_course(title='Python Basics', category='Programming'):
        course = Course(title=title, category=category)
        db.session.add(course)
        db.session.commit()
        return course

    return _make_course


@pytest.fixture
def course(make_course):
    return make_course()


@pytest.fixture
def make_group(db, make_course):
    def _make_group(trainer, course=None, schedule=None, students=(), name='Morning Group', **extra):
        course = course or make_course()
        data = {
            'name': name,
            'course_id': course.id,
            'start_date': '2024-01-01',
            'end_date': '2024-06-30',
            'schedule': schedule,
            'student_ids': [student.id for student in students],
        }
        data.update(extra)
        return GroupService.create_group(trainer.id, data)

    return _make_group


@pytest.fixture
def enroll(db):
    def _enroll(course, student, status=EnrollmentStatus.ACTIVE):
        enrollment = Enrollment(course_id=course.id, student_id=student.id, status=status)
        db.session.add(enrollment)
        db.session.commit()
        return enrollment

    return _enroll


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        return {'Authorization': f'Bearer {user.api_token}'}

    return _auth_headers
