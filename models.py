from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime

from backend.recurrence import (
    RECURRENCE_NONE,
    RecurrenceRule,
    parse_weekday_names,
    weekday_from_sunday_index,
)
from services.validation_service import format_timestamp

db = SQLAlchemy()

EXCEPTION_DELETED = 'deleted'
EXCEPTION_MODIFIED = 'modified'

COMPLETION_COMPLETED = 'completed'
COMPLETION_SKIPPED = 'skipped'


def _day(value):
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    name = db.Column(db.String(120), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    timezone = db.Column(db.String(64), default='Europe/Berlin')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'timezone': self.timezone,
            'createdAt': format_timestamp(self.created_at),
            'updatedAt': format_timestamp(self.updated_at),
        }


class Task(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    title = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text, nullable=True)
    priority = db.Column(db.String(20), nullable=False, default='Medium')  # Low, Medium, High
    status = db.Column(db.String(20), nullable=False, default='Todo')  # Todo, Done
    domain = db.Column(db.String(50), nullable=False)
    deadline = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'title': self.title,
            'description': self.description or '',
            'priority': self.priority,
            'status': self.status,
            'domain': self.domain,
            'deadline': format_timestamp(self.deadline),
            'createdAt': format_timestamp(self.created_at),
            'updatedAt': format_timestamp(self.updated_at),
        }


class Routine(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    frequency = db.Column(db.String(20), nullable=False)  # Daily, Weekly, Monthly, Quarterly, Yearly
    weekday = db.Column(db.Integer, nullable=True)  # 0=Sunday .. 6=Saturday
    day_of_month = db.Column(db.Integer, nullable=True)
    quarterly_day = db.Column(db.Integer, nullable=True)
    yearly_month = db.Column(db.Integer, nullable=True)
    yearly_day = db.Column(db.Integer, nullable=True)
    is_skippable = db.Column(db.Boolean, nullable=False, default=False)
    show_streak = db.Column(db.Boolean, nullable=False, default=False)
    time_type = db.Column(db.String(20), nullable=False, default='AllDay')  # AM, PM, AllDay, Specific
    specific_time = db.Column(db.String(5), nullable=True)  # HH:MM
    current_streak = db.Column(db.Integer, nullable=False, default=0)
    longest_streak = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    completions = db.relationship(
        'RoutineCompletion',
        backref='routine',
        lazy=True,
        cascade="all, delete-orphan",
        order_by="RoutineCompletion.completed_on.desc()",
    )

    @property
    def rule(self):
        freq = (self.frequency or '').lower()
        if freq == 'weekly':
            weekdays = frozenset([weekday_from_sunday_index(self.weekday)]) if self.weekday is not None else frozenset()
            return RecurrenceRule(kind=freq, weekdays=weekdays)
        if freq == 'monthly':
            return RecurrenceRule(kind=freq, day_of_month=self.day_of_month)
        if freq == 'quarterly':
            return RecurrenceRule(kind=freq, day_of_month=self.quarterly_day)
        if freq == 'yearly':
            return RecurrenceRule(kind=freq, month=self.yearly_month, day=self.yearly_day)
        if freq == 'daily':
            return RecurrenceRule(kind=freq)
        return RecurrenceRule()

    def to_dict(self):
        yearly = None
        if self.yearly_month is not None and self.yearly_day is not None:
            yearly = {'month': self.yearly_month, 'day': self.yearly_day}
        return {
            'id': self.id,
            'userId': self.user_id,
            'title': self.title,
            'frequency': self.frequency,
            'weekday': self.weekday,
            'dayOfMonth': self.day_of_month,
            'quarterlyDay': self.quarterly_day,
            'yearlyDate': yearly,
            'isSkippable': bool(self.is_skippable),
            'showStreak': bool(self.show_streak),
            'timeType': self.time_type,
            'specificTime': self.specific_time,
            'currentStreak': self.current_streak or 0,
            'longestStreak': self.longest_streak or 0,
            'createdAt': format_timestamp(self.created_at),
            'updatedAt': format_timestamp(self.updated_at),
        }


class RoutineCompletion(db.Model):
    __table_args__ = (db.UniqueConstraint('routine_id', 'completed_on', name='uq_routine_completion_day'),)

    id = db.Column(db.Integer, primary_key=True)
    routine_id = db.Column(db.Integer, db.ForeignKey('routine.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    completed_on = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False)  # completed, skipped
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'routineId': self.routine_id,
            'userId': self.user_id,
            'completedAt': _day(self.completed_on),
            'status': self.status,
            'createdAt': format_timestamp(self.created_at),
        }


class Event(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    start_date = db.Column(db.DateTime, nullable=False)  # naive UTC
    end_date = db.Column(db.DateTime, nullable=True)
    all_day = db.Column(db.Boolean, nullable=False, default=False)
    domain = db.Column(db.String(100), nullable=False)
    recurrence_type = db.Column(db.String(20), nullable=True)  # daily, weekly, monthly, quarterly, yearly
    recurrence_end = db.Column(db.Date, nullable=True)  # inclusive, None = never ends
    recurrence_days = db.Column(db.Text, nullable=True)  # JSON list of weekday names
    recurrence_anchor_day = db.Column(db.Integer, nullable=True)  # day-of-month kept after a split on a clamped date
    hide_from_agenda = db.Column(db.Boolean, nullable=False, default=False)
    version = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    exceptions = db.relationship(
        'EventException',
        backref='event',
        lazy=True,
        cascade="all, delete-orphan",
        order_by="EventException.original_date",
    )

    __mapper_args__ = {'version_id_col': version}

    @property
    def is_recurring(self):
        return bool(self.recurrence_type) and self.recurrence_type != RECURRENCE_NONE

    @property
    def rule(self):
        if not self.is_recurring:
            return RecurrenceRule()
        return RecurrenceRule.for_event(
            self.recurrence_type,
            self.start_date,
            weekdays=parse_weekday_names(self.recurrence_days),
            end_date=self.recurrence_end,
            anchor_day=self.recurrence_anchor_day,
        )

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'title': self.title,
            'startDate': format_timestamp(self.start_date),
            'endDate': format_timestamp(self.end_date),
            'allDay': bool(self.all_day),
            'domain': self.domain,
            'isRecurring': self.is_recurring,
            'recurrenceType': self.recurrence_type if self.is_recurring else None,
            'recurrenceEnd': _day(self.recurrence_end),
            'recurrenceDays': self.recurrence_days,
            'hideFromAgenda': bool(self.hide_from_agenda),
            'version': self.version,
            'createdAt': format_timestamp(self.created_at),
            'updatedAt': format_timestamp(self.updated_at),
        }


class EventException(db.Model):
    __table_args__ = (db.UniqueConstraint('event_id', 'original_date', name='uq_event_exception_day'),)

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey('event.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    original_date = db.Column(db.Date, nullable=False)
    kind = db.Column(db.String(20), nullable=False)  # deleted, modified
    modified_title = db.Column(db.String(255), nullable=True)
    modified_start = db.Column(db.DateTime, nullable=True)
    modified_end = db.Column(db.DateTime, nullable=True)
    modified_domain = db.Column(db.String(100), nullable=True)
    modified_all_day = db.Column(db.Boolean, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def is_deleted(self):
        return self.kind == EXCEPTION_DELETED

    def to_dict(self):
        return {
            'id': self.id,
            'eventId': self.event_id,
            'userId': self.user_id,
            'originalDate': _day(self.original_date),
            'type': self.kind,
            'modifiedTitle': self.modified_title,
            'modifiedStartDate': format_timestamp(self.modified_start),
            'modifiedEndDate': format_timestamp(self.modified_end),
            'modifiedDomain': self.modified_domain,
            'modifiedAllDay': self.modified_all_day,
            'createdAt': format_timestamp(self.created_at),
        }


class Category(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    items = db.relationship('TechStackItem', backref='category', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'name': self.name,
            'createdAt': format_timestamp(self.created_at),
        }


project_tech_stack = db.Table(
    'project_tech_stack',
    db.Column('project_id', db.Integer, db.ForeignKey('project.id'), primary_key=True),
    db.Column('tech_stack_item_id', db.Integer, db.ForeignKey('tech_stack_item.id'), primary_key=True),
)


class TechStackItem(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey('category.id'), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'categoryId': self.category_id,
            'name': self.name,
            'category': self.category.to_dict() if self.category else None,
            'createdAt': format_timestamp(self.created_at),
        }


class Project(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    title = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='Idea')
    repository_url = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tech_stack = db.relationship(
        'TechStackItem',
        secondary=project_tech_stack,
        backref='projects',
        lazy='subquery',
        order_by='TechStackItem.name',
    )
    tasks = db.relationship(
        'ProjectTask',
        backref='project',
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ProjectTask.assigned_at",
    )

    def get_progress(self):
        total = len(self.tasks)
        if total == 0:
            return 0.0
        done = sum(1 for pt in self.tasks if pt.task and pt.task.status == 'Done')
        return done / total * 100

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'title': self.title,
            'description': self.description,
            'status': self.status,
            'repositoryUrl': self.repository_url,
            'techStack': [item.to_dict() for item in self.tech_stack],
            'tasks': [pt.to_dict() for pt in self.tasks],
            'progress': self.get_progress(),
            'createdAt': format_timestamp(self.created_at),
            'updatedAt': format_timestamp(self.updated_at),
        }


class ProjectTask(db.Model):
    __table_args__ = (db.UniqueConstraint('project_id', 'task_id', name='uq_project_task'),)

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey('project.id'), nullable=False, index=True)
    task_id = db.Column(db.Integer, db.ForeignKey('task.id'), nullable=False, index=True)
    assigned_at = db.Column(db.DateTime, default=datetime.utcnow)

    task = db.relationship('Task')

    def to_dict(self):
        return {
            'id': self.id,
            'projectId': self.project_id,
            'taskId': self.task_id,
            'assignedAt': format_timestamp(self.assigned_at),
            'task': self.task.to_dict() if self.task else None,
        }
