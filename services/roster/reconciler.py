"""
Merges validated import rows into a consultant's roster.

Rows are matched to stored clients by case-insensitive email within the
owner's roster. Each row is read, compared, written and (for savings rows
whose balance changed) snapshotted, then committed before the next row is
touched. A storage failure only costs that row: it is rolled back, its
email is recorded, and the loop continues.
"""

import logging
from typing import Dict, List

from sqlalchemy.exc import SQLAlchemyError

from models import Client
from .repository import OwnerScopedClientRepository, to_money
from .types import ImportRow, ReconcileSummary, SchemaCapabilities, TrackKind

logger = logging.getLogger(__name__)


def _same_name(stored, incoming) -> bool:
    return (stored or '').strip().lower() == (incoming or '').strip().lower()


def _policy_fields(row: ImportRow) -> dict:
    return {
        'policy_type': row.policy_type or None,
        'policy_start_date': row.policy_start_date,
        'policy_end_date': row.policy_end_date,
    }


def build_update_fields(client: Client, row: ImportRow, capabilities: SchemaCapabilities) -> dict:
    """Columns to overwrite on an existing client. Reviving a deleted client is implicit."""
    fields = {
        'phone': row.phone or None,
        'deleted_at': None,
    }
    if capabilities.supports_policy_columns:
        fields['client_type'] = row.kind.value
    if not _same_name(client.name, row.name):
        fields['name'] = row.name

    if row.kind is TrackKind.SAVINGS:
        fields['current_savings'] = to_money(row.current_savings)
        if row.first_savings is not None:
            fields['first_savings'] = to_money(row.first_savings)
        if capabilities.supports_birth_date:
            fields['birth_date'] = row.birth_date
    elif capabilities.supports_policy_columns:
        fields.update(_policy_fields(row))
    return fields


def build_insert_fields(row: ImportRow, capabilities: SchemaCapabilities) -> dict:
    fields = {
        'name': row.name,
        'email': row.email,
        'phone': row.phone or None,
    }
    if capabilities.supports_policy_columns:
        fields['client_type'] = row.kind.value

    if row.kind is TrackKind.SAVINGS:
        fields['first_savings'] = to_money(row.first_savings)
        fields['current_savings'] = to_money(row.current_savings)
        if capabilities.supports_birth_date:
            fields['birth_date'] = row.birth_date
    else:
        fields['first_savings'] = to_money(0)
        fields['current_savings'] = to_money(0)
        if capabilities.supports_policy_columns:
            fields.update(_policy_fields(row))
    return fields


def _savings_changed(previous, row: ImportRow) -> bool:
    return (
        row.kind is TrackKind.SAVINGS
        and row.current_savings is not None
        and to_money(previous) != to_money(row.current_savings)
    )


def reconcile_rows(repository: OwnerScopedClientRepository, rows: List[ImportRow],
                   capabilities: SchemaCapabilities) -> ReconcileSummary:
    summary = ReconcileSummary()
    existing: Dict[str, Client] = repository.find_by_emails(row.email for row in rows)

    for row in rows:
        key = row.email.lower()
        client = existing.get(key)
        try:
            if client is not None:
                previous = client.current_savings
                repository.update(client, build_update_fields(client, row, capabilities))
                snapshot_needed = _savings_changed(previous, row)
            else:
                client = repository.insert(**build_insert_fields(row, capabilities))
                snapshot_needed = _savings_changed(0, row)

            if snapshot_needed:
                repository.append_snapshot(client.id, row.current_savings)
            repository.commit()
        except SQLAlchemyError:
            repository.rollback()
            logger.error(f"Failed to store imported client {row.email}", exc_info=True)
            summary.failures.append(row.email)
            continue

        if key in existing:
            summary.updated += 1
        else:
            summary.inserted += 1
            # A later row with the same address updates this client
            existing[key] = client
        if snapshot_needed:
            summary.snapshots += 1

    logger.info(
        f"Reconciled {len(rows)} rows for owner {repository.owner_id}: "
        f"{summary.updated} updated, {summary.inserted} inserted, "
        f"{summary.snapshots} snapshots, {len(summary.failures)} failed"
    )
    return summary
