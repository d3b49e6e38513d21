"""
Savings digest templates and delivery.

Each consultant owns at most one template; without one the defaults from
services.email_template are used. Delivery renders and sends one email
per client and logs the batch once at least one message went out.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from services.email_service import EmailDeliveryError, send_savings_digest_email
from services.email_template import (
    DEFAULT_EMAIL_BODY, DEFAULT_EMAIL_SUBJECT, DigestClient, render_digest_email
)
from services.roster import ActionResult, OwnerScopedClientRepository

logger = logging.getLogger(__name__)

LOG_PREVIEW_LENGTH = 120


@dataclass
class DeliveryResult:
    sent_count: int = 0
    failed: List[str] = field(default_factory=list)
    preview_subject: Optional[str] = None
    preview_text: Optional[str] = None


def load_email_template(repository: OwnerScopedClientRepository) -> dict:
    """The owner's template, or the defaults."""
    template = repository.get_email_template()
    if template is None:
        return {'subject': DEFAULT_EMAIL_SUBJECT, 'body': DEFAULT_EMAIL_BODY, 'is_default': True}
    return {'subject': template.subject, 'body': template.body, 'is_default': False}


def save_email_template(repository: OwnerScopedClientRepository, subject: str, body: str) -> ActionResult:
    try:
        repository.save_email_template(subject, body)
        repository.commit()
    except SQLAlchemyError:
        repository.rollback()
        logger.error("Email template upsert failed", exc_info=True)
        return ActionResult(False, "Şablon kaydedilemedi. Daha sonra tekrar deneyin.")
    return ActionResult(True, "Şablon güncellendi.")


def reset_email_template(repository: OwnerScopedClientRepository) -> ActionResult:
    try:
        repository.save_email_template(DEFAULT_EMAIL_SUBJECT, DEFAULT_EMAIL_BODY)
        repository.commit()
    except SQLAlchemyError:
        repository.rollback()
        logger.error("Email template reset failed", exc_info=True)
        return ActionResult(False, "Varsayılan şablon geri yüklenemedi.")
    return ActionResult(True, "Varsayılan şablon geri yüklendi.")


def to_digest_client(client) -> DigestClient:
    return DigestClient(
        name=client.name,
        email=client.email or None,
        first_savings=float(client.first_savings or 0),
        current_savings=float(client.current_savings or 0),
        start_date=client.created_at,
    )


def deliver_digest_emails(consultant_name: str, template: dict, clients: Iterable[DigestClient],
                          current_date: Optional[date] = None) -> DeliveryResult:
    """Render and send one digest per client; missing addresses and send errors are listed in `failed`."""
    subject_template = (template or {}).get('subject') or DEFAULT_EMAIL_SUBJECT
    body_template = (template or {}).get('body') or DEFAULT_EMAIL_BODY
    current_date = current_date or date.today()
    result = DeliveryResult()

    for client in clients:
        if not client.email:
            result.failed.append(client.name or "E-posta bulunmuyor")
            continue

        digest = render_digest_email(subject_template, body_template, consultant_name, [client], current_date)
        try:
            send_savings_digest_email([client.email], digest.subject, digest.html, digest.text)
        except EmailDeliveryError as e:
            logger.error(f"E-posta gönderimi başarısız: {str(e)}")
            result.failed.append(client.email)
            continue

        result.sent_count += 1
        if result.preview_subject is None:
            result.preview_subject = digest.subject
            result.preview_text = digest.text

    return result


def summarise_delivery(result: DeliveryResult) -> ActionResult:
    if result.sent_count == 0:
        return ActionResult(False, "Seçili müşterilere e-posta gönderilemedi.")
    if result.failed:
        return ActionResult(
            True,
            f"{result.sent_count} müşteriye gönderildi, ancak {len(result.failed)} adres başarısız oldu "
            f"({', '.join(result.failed)})."
        )
    return ActionResult(True, f"Tasarruf özeti {result.sent_count} müşteriye gönderildi.")


def record_email_log(repository: OwnerScopedClientRepository, subject: str, text: str, recipients: int,
                     preview_length: int = LOG_PREVIEW_LENGTH):
    """Best effort: a failed log insert never fails the send."""
    try:
        repository.add_email_log(subject, (text or '')[:preview_length], recipients)
        repository.commit()
    except SQLAlchemyError:
        repository.rollback()
        logger.error("Email log insert failed", exc_info=True)


def send_client_digests(repository: OwnerScopedClientRepository, consultant_name: str,
                        client_ids: Optional[List[int]] = None) -> ActionResult:
    """
    Send digests to the given clients, or to every active client when no ids are given.
    """
    if client_ids is None:
        clients = repository.list_active()
        if not clients:
            return ActionResult(False, "E-posta gönderilecek müşteri bulunamadı.")
    else:
        clients = repository.get_many_active(client_ids)
        if not clients:
            return ActionResult(False, "Seçilen müşteriler bulunamadı.")

    result = deliver_digest_emails(
        consultant_name,
        load_email_template(repository),
        [to_digest_client(client) for client in clients],
    )

    if result.sent_count > 0 and result.preview_subject:
        record_email_log(repository, result.preview_subject, result.preview_text, result.sent_count)

    logger.info(f"Digest run for owner {repository.owner_id}: sent={result.sent_count}, failed={len(result.failed)}")
    return summarise_delivery(result)
