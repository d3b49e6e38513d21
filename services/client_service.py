"""
Manual client maintenance and savings trend summaries.

All functions take an OwnerScopedClientRepository, so they only ever see
the signed-in consultant's clients. Actions return an ActionResult with a
Turkish message; storage failures are rolled back and reported, never raised.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from services.roster import ActionResult, OwnerScopedClientRepository, SchemaCapabilities, to_money
from utils import format_month_label, normalise_string

logger = logging.getLogger(__name__)

ALLOWED_CLIENT_TYPES = ('BES', 'ES', 'BES+ES')
SPARKLINE_MONTHS = 6
DASHBOARD_SNAPSHOT_LIMIT = 60


@dataclass
class ClientInput:
    """Validated form values for creating or editing a client."""
    name: str
    email: str
    phone: Optional[str] = None
    first_savings: float = 0
    current_savings: float = 0
    birth_date: Optional[date] = None
    client_type: Optional[str] = None
    policy_type: Optional[str] = None
    policy_start_date: Optional[date] = None
    policy_end_date: Optional[date] = None


@dataclass
class MonthlyPoint:
    month_key: str
    label: str
    amount: float


@dataclass
class TrendSummary:
    series: List[MonthlyPoint] = field(default_factory=list)
    delta: Optional[float] = None
    sparkline: List[float] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'series': [{'month': point.month_key, 'label': point.label, 'amount': point.amount}
                       for point in self.series],
            'delta': self.delta,
            'sparkline': self.sparkline,
        }


def create_client(repository: OwnerScopedClientRepository, data: ClientInput) -> ActionResult:
    try:
        client = repository.insert(
            name=data.name,
            email=data.email,
            phone=normalise_string(data.phone),
            first_savings=to_money(data.first_savings),
            current_savings=to_money(data.current_savings),
        )
        repository.commit()
    except SQLAlchemyError:
        repository.rollback()
        logger.error("Client insert failed", exc_info=True)
        return ActionResult(False, "Müşteri oluşturulamadı.")

    try:
        repository.append_snapshot(client.id, data.current_savings)
        repository.commit()
    except SQLAlchemyError:
        repository.rollback()
        logger.error(f"Initial snapshot insert failed for client {client.id}", exc_info=True)
        return ActionResult(False, "Müşteri oluşturuldu ancak tasarruf kaydı eklenemedi.")

    logger.info(f"Client {client.id} created by owner {repository.owner_id}")
    return ActionResult(True, "Müşteri oluşturuldu.")


def _clean_client_type(value: Optional[str]) -> Optional[str]:
    candidate = (value or '').strip().upper()
    return candidate if candidate in ALLOWED_CLIENT_TYPES else None


def build_edit_fields(data: ClientInput, capabilities: SchemaCapabilities) -> dict:
    """Columns written by a manual edit; optional columns only when the schema has them."""
    fields = {
        'name': data.name,
        'email': data.email,
        'phone': normalise_string(data.phone),
        'first_savings': to_money(data.first_savings),
        'current_savings': to_money(data.current_savings),
    }
    if capabilities.supports_birth_date:
        fields['birth_date'] = data.birth_date
    if capabilities.supports_policy_columns:
        fields['client_type'] = _clean_client_type(data.client_type)
        fields['policy_type'] = normalise_string(data.policy_type)
        fields['policy_start_date'] = data.policy_start_date
        fields['policy_end_date'] = data.policy_end_date
    return fields


def update_client(repository: OwnerScopedClientRepository, capabilities: SchemaCapabilities,
                  client_id: int, data: ClientInput) -> ActionResult:
    client = repository.get_active(client_id)
    if client is None:
        return ActionResult(False, "Müşteri bulunamadı.")

    savings_changed = to_money(client.current_savings) != to_money(data.current_savings)

    try:
        repository.update(client, build_edit_fields(data, capabilities))
        repository.commit()
    except SQLAlchemyError:
        repository.rollback()
        logger.error(f"Client update failed for {client_id}", exc_info=True)
        return ActionResult(False, "Müşteri güncellenemedi.")

    if savings_changed:
        try:
            repository.append_snapshot(client.id, data.current_savings)
            repository.commit()
        except SQLAlchemyError:
            repository.rollback()
            logger.error(f"Snapshot insert failed for client {client_id}", exc_info=True)

    return ActionResult(True, "Müşteri güncellendi.")


def delete_client(repository: OwnerScopedClientRepository, client_id: int) -> ActionResult:
    client = repository.get_active(client_id)
    if client is None:
        return ActionResult(False, "Müşteri bulunamadı.")

    try:
        repository.soft_delete(client)
        repository.commit()
    except SQLAlchemyError:
        repository.rollback()
        logger.error(f"Soft delete failed for client {client_id}", exc_info=True)
        return ActionResult(False, "Müşteri silinemedi.")

    return ActionResult(True, "Müşteri silindi.")


def delete_all_clients(repository: OwnerScopedClientRepository) -> ActionResult:
    try:
        count = repository.soft_delete_all()
        if count == 0:
            repository.rollback()
            return ActionResult(False, "Silinecek müşteri bulunmuyor.")
        repository.commit()
    except SQLAlchemyError:
        repository.rollback()
        logger.error("Bulk soft delete failed", exc_info=True)
        return ActionResult(False, "Müşteriler silinemedi.")

    return ActionResult(True, f"{count} müşteri silindi.")


def restore_client(repository: OwnerScopedClientRepository, client_id: int) -> ActionResult:
    client = repository.get_deleted(client_id)
    if client is None:
        return ActionResult(False, "Geri alınacak müşteri bulunamadı.")

    try:
        repository.restore(client)
        repository.commit()
    except SQLAlchemyError:
        repository.rollback()
        logger.error(f"Restore failed for client {client_id}", exc_info=True)
        return ActionResult(False, "Müşteri geri alınamadı.")

    return ActionResult(True, "Müşteri geri alındı.")


# -- trends -----------------------------------------------------------------

def _month_key(value) -> str:
    return f"{value.year}-{value.month:02d}"


def _summarise(series: List[MonthlyPoint], sparkline_months: Optional[int] = None) -> TrendSummary:
    delta = None
    if len(series) >= 2:
        delta = round(series[-1].amount - series[-2].amount, 2)
    points = series[-sparkline_months:] if sparkline_months else series
    return TrendSummary(series=series, delta=delta, sparkline=[point.amount for point in points])


def client_monthly_trend(snapshots) -> TrendSummary:
    """
    One point per calendar month: the most recent snapshot in that month.

    Args:
        snapshots: SavingsSnapshot rows, newest first
    """
    months = {}
    for snapshot in snapshots:
        if snapshot.recorded_at is None:
            continue
        key = _month_key(snapshot.recorded_at)
        if key not in months:
            months[key] = MonthlyPoint(key, format_month_label(snapshot.recorded_at), float(snapshot.amount or 0))

    series = [months[key] for key in sorted(months)]
    return _summarise(series)


def portfolio_monthly_trend(snapshots) -> TrendSummary:
    """One point per calendar month: the largest snapshot amount in that month."""
    months = {}
    for snapshot in snapshots:
        if snapshot.recorded_at is None:
            continue
        key = _month_key(snapshot.recorded_at)
        amount = float(snapshot.amount or 0)
        existing = months.get(key)
        if existing is None or amount >= existing.amount:
            months[key] = MonthlyPoint(key, format_month_label(snapshot.recorded_at), amount)

    series = [months[key] for key in sorted(months)]
    return _summarise(series, SPARKLINE_MONTHS)


def build_dashboard_summary(repository: OwnerScopedClientRepository) -> dict:
    clients = repository.list_active()
    total_current = sum(float(client.current_savings or 0) for client in clients)
    total_first = sum(float(client.first_savings or 0) for client in clients)
    growth = 0 if total_first == 0 else (total_current - total_first) / total_first

    upload = repository.latest_upload()
    trend = portfolio_monthly_trend(repository.recent_snapshots(DASHBOARD_SNAPSHOT_LIMIT))

    return {
        'client_count': len(clients),
        'total_first_savings': round(total_first, 2),
        'total_current_savings': round(total_current, 2),
        'growth': growth,
        'latest_upload': {
            'id': upload.id,
            'filename': upload.filename,
            'total_records': upload.total_records,
            'processed_at': upload.processed_at.isoformat() if upload.processed_at else None,
        } if upload else None,
        'recent_clients': [
            {
                'id': client.id,
                'name': client.name,
                'email': client.email,
                'created_at': client.created_at.isoformat() if client.created_at else None,
            }
            for client in repository.recent_clients()
        ],
        'recent_emails': [
            {
                'id': log.id,
                'subject': log.subject,
                'recipients': log.recipients,
                'sent_at': log.sent_at.isoformat() if log.sent_at else None,
            }
            for log in repository.recent_email_logs()
        ],
        'trend': trend.to_dict(),
    }
