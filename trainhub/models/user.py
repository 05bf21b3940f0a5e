# models/user.py
import secrets

from flask_login import UserMixin
from sqlalchemy import Index

from trainhub.extensions import db
from .base import BaseModel


class RoleType:
    """Define role types as constants."""
    ADMIN = 'admin'
    TRAINER = 'trainer'
    STUDENT = 'student'

    ALL = (ADMIN, TRAINER, STUDENT)


class User(UserMixin, BaseModel):
    """Platform user. Credentials are managed elsewhere; the API only sees tokens."""

    __tablename__ = 'users'

    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    role = db.Column(db.String(20), default=RoleType.STUDENT, nullable=False)
    api_token = db.Column(db.String(128), unique=True, nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    __table_args__ = (
        Index('idx_user_role_active', 'role', 'is_active'),
    )

    def __repr__(self):
        return f'<User {self.email} ({self.role})>'

    def issue_api_token(self, nbytes=32):
        """Generate and assign a fresh API token."""
        self.api_token = secrets.token_urlsafe(nbytes)
        return self.api_token

    def has_any_role(self, roles):
        return self.role in roles

    def is_admin(self):
        return self.role == RoleType.ADMIN

    def to_summary(self):
        return {'id': self.id, 'name': self.name, 'email': self.email}
