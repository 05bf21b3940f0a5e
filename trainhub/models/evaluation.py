# models/evaluation.py
from trainhub.extensions import db
from .base import BaseModel


class SessionEvaluation(BaseModel):
    """Trainer's evaluation of a delivered session. Authored by the evaluation module."""

    __tablename__ = 'session_evaluation'

    session_id = db.Column(db.String(36), db.ForeignKey('session.id'), nullable=False, index=True)
    trainer_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    rating = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    session = db.relationship('Session', back_populates='evaluations')

    def __repr__(self):
        return f'<SessionEvaluation {self.session_id}>'
