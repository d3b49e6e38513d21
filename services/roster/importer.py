"""
Client file import: parse, validate, reconcile, log, birthday trigger.

Returns a single ActionResult whose Turkish message summarises what
happened. Structural and validation problems write nothing; row-level
storage failures are listed by email and flip success to False; a failed
lookup of existing clients stops before any row is written. Birthday
campaign problems never reach the caller.
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from .birthdays import create_birthday_campaign, find_birthday_candidates
from .exceptions import RosterImportError
from .reader import parse_roster_csv
from .reconciler import reconcile_rows
from .repository import OwnerScopedClientRepository
from .types import ActionResult, ReconcileSummary, SchemaCapabilities, TrackKind

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = 'upload.csv'

MISSING_POLICY_COLUMNS_MESSAGE = (
    "Elementer sigorta CSV yüklemeleri için veritabanındaki clients tablosuna client_type, "
    "policy_type, policy_start_date ve policy_end_date kolonlarını eklemelisiniz."
)


def summarise_import(summary: ReconcileSummary) -> ActionResult:
    parts = []
    if summary.updated > 0:
        parts.append(f"{summary.updated} müşteri güncellendi")
    if summary.inserted > 0:
        parts.append(f"{summary.inserted} yeni müşteri eklendi")
    if not parts:
        parts.append("Herhangi bir kayıt güncellenmedi")

    failure_note = f" (hatalı: {', '.join(summary.failures)})" if summary.failures else ""
    return ActionResult(success=summary.success, message=f"{', '.join(parts)}.{failure_note}")


def import_clients(repository: OwnerScopedClientRepository,
                   capabilities: SchemaCapabilities,
                   content: Optional[str],
                   kind: TrackKind,
                   filename: Optional[str] = None,
                   today: Optional[date] = None) -> ActionResult:
    if kind is TrackKind.POLICY and not capabilities.supports_policy_columns:
        return ActionResult(False, MISSING_POLICY_COLUMNS_MESSAGE)

    if content is None:
        return ActionResult(False, "Yüklemek için bir CSV dosyası seçmelisiniz.")

    try:
        rows = parse_roster_csv(content, kind)
    except RosterImportError as e:
        logger.info(f"Rejected {kind.value} upload for owner {repository.owner_id}: {e}")
        return ActionResult(False, str(e))

    if not rows:
        return ActionResult(False, "CSV içinde müşteri satırı bulunamadı.")

    try:
        summary = reconcile_rows(repository, rows, capabilities)
    except SQLAlchemyError:
        repository.rollback()
        logger.error(f"Existing client lookup failed for owner {repository.owner_id}", exc_info=True)
        return ActionResult(False, "Mevcut müşteriler alınamadı.")

    try:
        repository.append_upload_log(filename or DEFAULT_FILENAME, len(rows))
        repository.commit()
    except SQLAlchemyError:
        repository.rollback()
        logger.error("Upload log insert failed", exc_info=True)

    create_birthday_campaign(repository, find_birthday_candidates(rows, today))

    return summarise_import(summary)
