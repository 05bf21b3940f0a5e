# models/base.py
from datetime import datetime, date
import uuid

from trainhub.extensions import db


class BaseModel(db.Model):
    """Base model class with common functionality."""

    __abstract__ = True

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    def to_dict(self, exclude=()):
        """Convert model instance to dictionary."""
        result = {}

        for column in self.__table__.columns:
            if column.name in exclude:
                continue
            value = getattr(self, column.name)
            if isinstance(value, (datetime, date)):
                result[column.name] = value.isoformat()
            else:
                result[column.name] = value

        return result

    def from_dict(self, data):
        """Update model instance from dictionary."""
        for field, value in data.items():
            if hasattr(self, field) and field not in ['id', 'created_at', 'updated_at']:
                setattr(self, field, value)
