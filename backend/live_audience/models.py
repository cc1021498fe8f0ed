from datetime import datetime, timezone
from live_audience import db
import json

SESSION_TYPES = ('poll', 'exam', 'survey')
# draft -> active -> in-progress -> completed; inactive from active or in-progress
SESSION_STATUSES = ('draft', 'active', 'in-progress', 'completed', 'inactive')
QUESTION_TYPES = ('multiple-choice', 'text')

# Participant details a session may require at join; name is always required
PARTICIPANT_FIELDS = (
    ('name', 'Participant Name'),
    ('external_id', 'Participant ID'),
    ('organization', 'Organization'),
    ('mobile', 'Mobile Number'),
    ('email', 'Email'),
    ('location', 'Location'),
)
PARTICIPANT_FIELD_NAMES = tuple(name for name, _ in PARTICIPANT_FIELDS)


def _utcnow():
    return datetime.now(timezone.utc)


def _isoformat(value):
    return value.isoformat() if value else None


class InteractionSession(db.Model):
    __tablename__ = 'interaction_session'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    session_type = db.Column('type', db.String(16), nullable=False, default='poll')
    status = db.Column(db.String(16), nullable=False, default='draft', index=True)
    required_participant_fields = db.Column(db.Text, nullable=True)  # JSON-encoded list of field names
    # Host-owned pointer; only meaningful while in-progress
    current_question_index = db.Column(db.Integer, nullable=True)
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    questions = db.relationship(
        'InteractionQuestion',
        back_populates='session',
        order_by='InteractionQuestion.position',
        cascade='all, delete-orphan',
    )

    @property
    def required_fields(self):
        try:
            fields = json.loads(self.required_participant_fields) if self.required_participant_fields else []
        except ValueError:
            fields = []
        if 'name' not in fields:
            fields.insert(0, 'name')
        return fields

    @required_fields.setter
    def required_fields(self, fields):
        self.required_participant_fields = json.dumps(list(fields or []))

    @property
    def has_started(self):
        return self.started_at is not None

    @property
    def current_question(self):
        idx = self.current_question_index
        if idx is None or not (0 <= idx < len(self.questions)):
            return None
        return self.questions[idx]

    def to_dict(self, include_questions=True, include_answers=False):
        payload = {
            'id': self.id,
            'name': self.name,
            'type': self.session_type,
            'status': self.status,
            'required_participant_fields': self.required_fields,
            'current_question_index': self.current_question_index,
            'question_count': len(self.questions),
            'started_at': _isoformat(self.started_at),
            'created_at': _isoformat(self.created_at),
        }
        if include_questions:
            payload['questions'] = [q.to_dict(include_answer=include_answers) for q in self.questions]
        return payload


class InteractionQuestion(db.Model):
    __tablename__ = 'interaction_question'
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('interaction_session.id'), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    text = db.Column(db.Text, nullable=False)
    question_type = db.Column('type', db.String(32), nullable=False, default='multiple-choice')
    correct_option_id = db.Column(db.String(64), nullable=True)
    duration = db.Column(db.Integer, nullable=True)  # seconds; NULL means untimed
    session = db.relationship('InteractionSession', back_populates='questions')
    options = db.relationship(
        'QuestionOption',
        back_populates='question',
        order_by='QuestionOption.position',
        cascade='all, delete-orphan',
    )

    @property
    def option_ids(self):
        return [o.id for o in self.options]

    def to_dict(self, include_answer=False):
        payload = {
            'id': self.id,
            'session_id': self.session_id,
            'position': self.position,
            'text': self.text,
            'type': self.question_type,
            'options': [o.to_dict() for o in self.options],
            'duration': self.duration,
        }
        if include_answer:
            payload['correct_option_id'] = self.correct_option_id
        return payload


class QuestionOption(db.Model):
    __tablename__ = 'question_option'
    question_id = db.Column(db.Integer, db.ForeignKey('interaction_question.id'), primary_key=True)
    id = db.Column(db.String(64), primary_key=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    text = db.Column(db.String(512), nullable=False)
    question = db.relationship('InteractionQuestion', back_populates='options')

    def to_dict(self):
        return {
            'id': self.id,
            'text': self.text,
        }


class Participant(db.Model):
    __tablename__ = 'participant'
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('interaction_session.id'), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    external_id = db.Column(db.String(64), nullable=True)
    organization = db.Column(db.String(128), nullable=True)
    mobile = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(254), nullable=True)
    location = db.Column(db.String(128), nullable=True)
    joined_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'session_id': self.session_id,
            'name': self.name,
            'external_id': self.external_id,
            'organization': self.organization,
            'mobile': self.mobile,
            'email': self.email,
            'location': self.location,
            'joined_at': _isoformat(self.joined_at),
        }


class InteractionResponse(db.Model):
    __tablename__ = 'interaction_response'
    __table_args__ = (
        db.UniqueConstraint('participant_id', 'question_id', name='uq_response_participant_question'),
    )
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('interaction_session.id'), nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey('interaction_question.id'), nullable=False, index=True)
    participant_id = db.Column(db.Integer, db.ForeignKey('participant.id'), nullable=False)
    answer = db.Column(db.Text, nullable=False, default='')
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'session_id': self.session_id,
            'question_id': self.question_id,
            'participant_id': self.participant_id,
            'answer': self.answer,
            'submitted_at': _isoformat(self.submitted_at),
        }

