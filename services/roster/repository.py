"""
Owner-scoped access to client rows.

Every query on clients, snapshots, uploads, campaigns, templates and email
logs goes through an OwnerScopedClientRepository bound to one consultant,
so the ownership filter is applied in one place instead of at every call
site.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, inspect

from models import (
    db, Client, SavingsSnapshot, Upload, EmailTemplate, EmailLog,
    CommunicationCampaign, CommunicationRecipient, CommunicationChannelStatus
)
from .types import SchemaCapabilities

logger = logging.getLogger(__name__)

POLICY_COLUMNS = ('client_type', 'policy_type', 'policy_start_date', 'policy_end_date')


def detect_schema_capabilities(engine=None) -> SchemaCapabilities:
    """Inspect the clients table once and report which optional columns exist."""
    engine = engine or db.engine
    columns = {column['name'] for column in inspect(engine).get_columns(Client.__tablename__)}
    capabilities = SchemaCapabilities(
        supports_birth_date='birth_date' in columns,
        supports_policy_columns=all(name in columns for name in POLICY_COLUMNS),
    )
    logger.debug(f"Client schema capabilities: {capabilities}")
    return capabilities


def to_money(value) -> Decimal:
    """Amounts are stored with two decimals; compare them the same way."""
    return Decimal(str(value or 0)).quantize(Decimal('0.01'))


class OwnerScopedClientRepository:
    def __init__(self, owner_id: int, session=None):
        if owner_id is None:
            raise ValueError("owner_id is required")
        self.owner_id = owner_id
        self.session = session or db.session

    # -- queries ----------------------------------------------------------

    def _clients(self, include_deleted: bool = False):
        query = self.session.query(Client).filter(Client.owner_id == self.owner_id)
        if not include_deleted:
            query = query.filter(Client.deleted_at.is_(None))
        return query

    def find_by_emails(self, emails: Iterable[str]) -> Dict[str, Client]:
        """
        Clients keyed by lower-cased email, soft-deleted ones included.

        When an address exists more than once, the active row wins.
        """
        keys = sorted({email.lower() for email in emails if email})
        if not keys:
            return {}
        matches = self._clients(include_deleted=True).filter(
            func.lower(Client.email).in_(keys)
        ).order_by(Client.id).all()

        result = {}
        for client in matches:
            key = client.email.lower()
            current = result.get(key)
            if current is None or current.is_deleted or not client.is_deleted:
                result[key] = client
        return result

    def list_active(self) -> List[Client]:
        return self._clients().order_by(Client.name.asc()).all()

    def list_deleted(self) -> List[Client]:
        return self._clients(include_deleted=True).filter(
            Client.deleted_at.isnot(None)
        ).order_by(Client.deleted_at.desc()).all()

    def get_active(self, client_id: int) -> Optional[Client]:
        return self._clients().filter(Client.id == client_id).first()

    def get_deleted(self, client_id: int) -> Optional[Client]:
        return self._clients(include_deleted=True).filter(
            Client.id == client_id, Client.deleted_at.isnot(None)
        ).first()

    def get_any(self, client_id: int) -> Optional[Client]:
        return self._clients(include_deleted=True).filter(Client.id == client_id).first()

    def get_many_active(self, client_ids: Iterable[int]) -> List[Client]:
        ids = list(client_ids)
        if not ids:
            return []
        return self._clients().filter(Client.id.in_(ids)).order_by(Client.name.asc()).all()

    def recent_clients(self, limit: int = 5) -> List[Client]:
        return self._clients().order_by(Client.created_at.desc(), Client.id.desc()).limit(limit).all()

    def list_snapshots(self, client_id: int) -> List[SavingsSnapshot]:
        return self.session.query(SavingsSnapshot).join(Client).filter(
            Client.owner_id == self.owner_id,
            SavingsSnapshot.client_id == client_id,
        ).order_by(SavingsSnapshot.recorded_at.desc(), SavingsSnapshot.id.desc()).all()

    def recent_snapshots(self, limit: int = 60) -> List[SavingsSnapshot]:
        return self.session.query(SavingsSnapshot).join(Client).filter(
            Client.owner_id == self.owner_id
        ).order_by(SavingsSnapshot.recorded_at.desc(), SavingsSnapshot.id.desc()).limit(limit).all()

    def latest_upload(self) -> Optional[Upload]:
        return self.session.query(Upload).filter(
            Upload.owner_id == self.owner_id
        ).order_by(Upload.processed_at.desc(), Upload.id.desc()).first()

    # -- writes (flush only; callers own the commit) ----------------------

    def insert(self, **fields) -> Client:
        client = Client(owner_id=self.owner_id, **fields)
        self.session.add(client)
        self.session.flush()
        return client

    def update(self, client: Client, fields: dict) -> Client:
        if client.owner_id != self.owner_id:
            raise PermissionError("Client does not belong to this owner")
        for name, value in fields.items():
            setattr(client, name, value)
        self.session.flush()
        return client

    def append_snapshot(self, client_id: int, amount) -> SavingsSnapshot:
        snapshot = SavingsSnapshot(client_id=client_id, amount=to_money(amount))
        self.session.add(snapshot)
        self.session.flush()
        return snapshot

    def append_upload_log(self, filename: str, total_records: int) -> Upload:
        upload = Upload(owner_id=self.owner_id, filename=filename, total_records=total_records)
        self.session.add(upload)
        self.session.flush()
        return upload

    def soft_delete(self, client: Client) -> Client:
        return self.update(client, {'deleted_at': datetime.utcnow()})

    def soft_delete_all(self) -> int:
        now = datetime.utcnow()
        count = self._clients().update({Client.deleted_at: now}, synchronize_session=False)
        self.session.flush()
        return count

    def restore(self, client: Client) -> Client:
        return self.update(client, {'deleted_at': None})

    def create_campaign(self, subject: str, body_html: str, body_text: str,
                        scheduled_at=None, status=CommunicationCampaign.STATUS_DRAFT,
                        reasons_json=None) -> CommunicationCampaign:
        campaign = CommunicationCampaign(
            owner_id=self.owner_id,
            subject=subject,
            body_html=body_html,
            body_text=body_text,
            reasons_json=reasons_json,
            scheduled_at=scheduled_at,
            status=status,
        )
        self.session.add(campaign)
        self.session.flush()
        return campaign

    def add_recipient(self, campaign: CommunicationCampaign, client_name: str, client_email: str,
                      client_id: Optional[int] = None) -> CommunicationRecipient:
        if campaign.owner_id != self.owner_id:
            raise PermissionError("Campaign does not belong to this owner")
        recipient = CommunicationRecipient(
            campaign_id=campaign.id,
            client_id=client_id,
            client_name=client_name or '',
            client_email=client_email or '',
        )
        self.session.add(recipient)
        self.session.flush()
        return recipient

    def add_recipients(self, campaign: CommunicationCampaign, clients: Iterable[Client]) -> List[CommunicationRecipient]:
        return [
            self.add_recipient(campaign, client.name, client.email, client_id=client.id)
            for client in clients
        ]

    def add_channel_status(self, campaign: CommunicationCampaign, channel: str, status: str,
                           scheduled_at=None, completed_at=None) -> CommunicationChannelStatus:
        if campaign.owner_id != self.owner_id:
            raise PermissionError("Campaign does not belong to this owner")
        channel_status = CommunicationChannelStatus(
            campaign_id=campaign.id,
            channel=channel,
            status=status,
            scheduled_at=scheduled_at,
            completed_at=completed_at,
        )
        self.session.add(channel_status)
        self.session.flush()
        return channel_status

    def add_email_log(self, subject: str, body_preview: str, recipients: int) -> EmailLog:
        log = EmailLog(
            owner_id=self.owner_id,
            subject=subject,
            body_preview=body_preview,
            recipients=recipients,
        )
        self.session.add(log)
        self.session.flush()
        return log

    def recent_email_logs(self, limit: int = 5) -> List[EmailLog]:
        return self.session.query(EmailLog).filter(
            EmailLog.owner_id == self.owner_id
        ).order_by(EmailLog.sent_at.desc(), EmailLog.id.desc()).limit(limit).all()

    def get_email_template(self) -> Optional[EmailTemplate]:
        return self.session.query(EmailTemplate).filter(EmailTemplate.owner_id == self.owner_id).first()

    def save_email_template(self, subject: str, body: str) -> EmailTemplate:
        """Insert or overwrite the owner's single template."""
        template = self.get_email_template()
        if template is None:
            template = EmailTemplate(owner_id=self.owner_id, subject=subject, body=body)
            self.session.add(template)
        else:
            template.subject = subject
            template.body = body
        self.session.flush()
        return template

    def list_campaigns(self) -> List[CommunicationCampaign]:
        return self.session.query(CommunicationCampaign).filter(
            CommunicationCampaign.owner_id == self.owner_id
        ).order_by(CommunicationCampaign.created_at.desc(), CommunicationCampaign.id.desc()).all()

    def get_campaign(self, campaign_id: int) -> Optional[CommunicationCampaign]:
        return self.session.query(CommunicationCampaign).filter(
            CommunicationCampaign.owner_id == self.owner_id,
            CommunicationCampaign.id == campaign_id,
        ).first()

    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()
