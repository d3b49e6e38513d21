# models.py
from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()


class User(UserMixin, db.Model):
    """A consultant. Every client, template and campaign is scoped to one."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120))
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256))
    phone = db.Column(db.String(40))
    bio = db.Column(db.String(280))
    photo_url = db.Column(db.String(500))
    photo_path = db.Column(db.String(300))
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f'<User {self.email}>'


class Client(db.Model):
    __tablename__ = 'clients'

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), index=True)
    phone = db.Column(db.String(40))
    birth_date = db.Column(db.Date)
    # BES, ES or BES+ES
    client_type = db.Column(db.String(10))
    policy_type = db.Column(db.String(120))
    policy_start_date = db.Column(db.Date)
    policy_end_date = db.Column(db.Date)
    first_savings = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    current_savings = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    deleted_at = db.Column(db.DateTime)

    owner = db.relationship('User', backref=db.backref('clients', lazy=True))
    snapshots = db.relationship('SavingsSnapshot', backref='client', lazy=True,
                                order_by='SavingsSnapshot.recorded_at')

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'birth_date': self.birth_date.isoformat() if self.birth_date else None,
            'client_type': self.client_type,
            'policy_type': self.policy_type,
            'policy_start_date': self.policy_start_date.isoformat() if self.policy_start_date else None,
            'policy_end_date': self.policy_end_date.isoformat() if self.policy_end_date else None,
            'first_savings': float(self.first_savings or 0),
            'current_savings': float(self.current_savings or 0),
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'deleted_at': self.deleted_at.isoformat() if self.deleted_at else None,
        }

    def __repr__(self):
        return f'<Client {self.name} <{self.email}>>'


class SavingsSnapshot(db.Model):
    """Point-in-time record of a client's current savings. Append-only."""
    __tablename__ = 'savings_snapshots'

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey('clients.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    recorded_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)


class Upload(db.Model):
    __tablename__ = 'uploads'

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    filename = db.Column(db.String(255), nullable=False)
    total_records = db.Column(db.Integer, nullable=False, default=0)
    processed_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)


class EmailTemplate(db.Model):
    __tablename__ = 'email_templates'

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('users.id'), unique=True, nullable=False)
    subject = db.Column(db.String(140), nullable=False)
    body = db.Column(db.Text, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class EmailLog(db.Model):
    __tablename__ = 'email_logs'

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    subject = db.Column(db.String(255), nullable=False)
    body_preview = db.Column(db.String(255))
    recipients = db.Column(db.Integer, nullable=False, default=0)
    sent_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)


class CommunicationCampaign(db.Model):
    __tablename__ = 'communication_campaigns'

    STATUS_DRAFT = 'DRAFT'
    STATUS_SCHEDULED = 'SCHEDULED'
    STATUS_COMPLETED = 'COMPLETED'

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    subject = db.Column(db.String(255), nullable=False)
    body_html = db.Column(db.Text, nullable=False)
    body_text = db.Column(db.Text, nullable=False)
    reasons_json = db.Column(db.Text)
    scheduled_at = db.Column(db.DateTime)
    status = db.Column(db.String(20), nullable=False, default=STATUS_DRAFT)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    recipients = db.relationship('CommunicationRecipient', backref='campaign', lazy=True,
                                 cascade='all, delete-orphan')
    channel_statuses = db.relationship('CommunicationChannelStatus', backref='campaign', lazy=True,
                                       cascade='all, delete-orphan')


class CommunicationRecipient(db.Model):
    __tablename__ = 'communication_recipients'

    id = db.Column(db.Integer, primary_key=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey('communication_campaigns.id'), nullable=False, index=True)
    # Birthday campaigns are created from import rows, before a client id is known
    client_id = db.Column(db.Integer, db.ForeignKey('clients.id'), nullable=True)
    client_name = db.Column(db.String(200), nullable=False, default='')
    client_email = db.Column(db.String(200), nullable=False, default='')


class CommunicationChannelStatus(db.Model):
    __tablename__ = 'communication_channel_statuses'

    id = db.Column(db.Integer, primary_key=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey('communication_campaigns.id'), nullable=False, index=True)
    channel = db.Column(db.String(30), nullable=False)
    status = db.Column(db.String(20), nullable=False)
    scheduled_at = db.Column(db.DateTime)
    completed_at = db.Column(db.DateTime)
