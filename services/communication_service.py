"""
Communication planner: campaigns sent now or scheduled for later.

A plan targets active clients, carries one or more reasons and channels,
and always gets a portfolio summary (with a chart when the chart server
answers) appended to the body. Send-now plans personalise and email each
recipient before the campaign is stored.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import List, Optional

import pytz
from sqlalchemy.exc import SQLAlchemyError

from models import CommunicationCampaign
from services.chart_service import generate_savings_line_chart
from services.digest_service import record_email_log
from services.email_service import EmailDeliveryError, send_savings_digest_email
from services.email_template import apply_template, build_placeholder_map
from services.roster import OwnerScopedClientRepository
from services.sanitize import extract_plain_text, sanitize_rich_text, sanitize_text
from utils import format_currency, format_date_tr, get_app_timezone, local_now

logger = logging.getLogger(__name__)

CAMPAIGN_LOG_PREVIEW_LENGTH = 160

COMMUNICATION_REASONS = [
    {
        'id': 'policy-update',
        'label': 'BES Poliçe Bilgilendirme',
        'description': 'Poliçe değişikliği, katkı payı artışı veya avantajlı kampanyaları duyurun.',
    },
    {
        'id': 'birthday',
        'label': 'Doğum Günü Kutlaması',
        'description': 'Müşterilerin özel günlerinde kutlama mesajı gönderin.',
    },
    {
        'id': 'renewal-reminder',
        'label': 'Katkı Payı Hatırlatma',
        'description': 'Ödeme tarihi yaklaşan müşteriler için hatırlatma paylaşın.',
    },
    {
        'id': 'performance',
        'label': 'Fon Performansı Özeti',
        'description': 'Son dönem performans değişikliklerini özetleyin.',
    },
]

COMMUNICATION_CHANNELS = ('email', 'sms', 'whatsapp', 'phone')


@dataclass
class PlanResult:
    success: bool
    message: str
    scheduled_at: Optional[datetime] = None
    recipients: Optional[int] = None
    failed: List[str] = field(default_factory=list)
    campaign_id: Optional[int] = None

    def to_dict(self) -> dict:
        payload = {'success': self.success, 'message': self.message}
        if self.scheduled_at is not None:
            payload['scheduled_at'] = self.scheduled_at.isoformat()
        if self.recipients is not None:
            payload['recipients'] = self.recipients
        if self.failed:
            payload['failed'] = list(self.failed)
        if self.campaign_id is not None:
            payload['campaign_id'] = self.campaign_id
        return payload


def format_reason_labels(reason_ids) -> str:
    if not reason_ids:
        return "Genel iletişim"
    labels = {reason['id']: reason['label'] for reason in COMMUNICATION_REASONS}
    return ", ".join(labels.get(reason_id, reason_id) for reason_id in reason_ids if reason_id)


def prepare_body(raw_body: str) -> tuple:
    """Sanitised rich-text body and its plain-text rendering, with the Turkish length messages."""
    body = sanitize_rich_text(raw_body or '')
    body_text = extract_plain_text(body)
    if not body:
        return body, body_text, "İletişim içeriği boş olamaz."
    if len(body) > 8000:
        return body, body_text, "İletişim içeriği en fazla 8000 karakter olabilir."
    if len(body_text) < 20:
        return body, body_text, "İletişim içeriği en az 20 karakter olmalıdır."
    return body, body_text, None


def resolve_schedule(send_now: bool, schedule_date: Optional[date], schedule_time: Optional[time]) -> Optional[datetime]:
    """
    Naive UTC timestamp for the campaign.

    Scheduled dates and times are entered in the app timezone.
    """
    if send_now:
        return datetime.utcnow()
    if schedule_date is None or schedule_time is None:
        return None
    local = get_app_timezone().localize(datetime.combine(schedule_date, schedule_time))
    return local.astimezone(pytz.utc).replace(tzinfo=None)


def build_summary_html(clients, chart_image: Optional[str]) -> str:
    total_first = sum(float(client.first_savings or 0) for client in clients)
    total_current = sum(float(client.current_savings or 0) for client in clients)
    change = total_current - total_first
    growth = 0 if total_first == 0 else change / total_first * 100
    sign = "+" if growth >= 0 else ""

    summary = (
        '<div style="margin-top:24px;">'
        '<p style="margin:0 0 12px 0; font-size:15px;">Bu hafta itibarıyla bireysel emeklilik portföyünüz:</p>'
        f'<p style="margin:4px 0; font-size:15px;">💰 <strong>Toplam Birikim:</strong> {format_currency(total_current)}</p>'
        f'<p style="margin:4px 0; font-size:15px;">📊 <strong>Geçen Ay:</strong> {format_currency(total_first)}</p>'
        f'<p style="margin:4px 0; font-size:15px;">📈 <strong>Değişim:</strong> {sign}{growth:.2f}%</p>'
        f'<p style="margin:4px 0 16px 0; font-size:15px;">💼 <strong>Aylık Katkı:</strong> {format_currency(change)}</p>'
        '</div>'
    )
    if chart_image:
        summary += (
            '<div style="margin:20px 0; text-align:center;">'
            f'<img src="{chart_image}" alt="Birikim değişimi grafiği" '
            'style="max-width:100%; border:1px solid #d1d5db; border-radius:12px;" /></div>'
        )
    return summary


def _portfolio_chart(clients) -> Optional[str]:
    total_first = sum(float(client.first_savings or 0) for client in clients)
    total_current = sum(float(client.current_savings or 0) for client in clients)
    return generate_savings_line_chart(['Geçen Ay', 'Bugün'], [round(total_first, 2), round(total_current, 2)])


def _send_now(clients, subject: str, body_html: str, consultant_name: str) -> tuple:
    """Personalise and send to every client with an address. Returns (sent, failed, preview)."""
    failed = [client.name or str(client.id) for client in clients if not client.email]
    sent = 0
    preview = None
    current_date = format_date_tr(local_now())

    for client in clients:
        if not client.email:
            continue
        replacements = build_placeholder_map(
            consultant_name, current_date,
            client_name=client.name,
            client_email=client.email,
            first_savings=client.first_savings,
            current_savings=client.current_savings,
            start_date=client.created_at,
            growth=format_currency(float(client.current_savings or 0) - float(client.first_savings or 0)),
        )
        personal_subject = apply_template(subject, replacements)
        personal_html = apply_template(body_html, replacements)
        personal_text = extract_plain_text(personal_html)
        try:
            send_savings_digest_email([client.email], personal_subject, personal_html, personal_text)
        except EmailDeliveryError as e:
            logger.error(f"Hemen gönder e-postası başarısız: {str(e)}")
            failed.append(client.email)
            continue
        sent += 1
        if preview is None:
            preview = (personal_subject, personal_text)

    return sent, failed, preview


def plan_communication(repository: OwnerScopedClientRepository, consultant_name: str, client_ids: List[int],
                       reasons: List[str], channels: List[str], subject: str, body_html: str, body_text: str,
                       send_now: bool = False, schedule_date: Optional[date] = None,
                       schedule_time: Optional[time] = None) -> PlanResult:
    """
    Store a campaign for the selected clients, sending it first when `send_now` is set.

    `body_html` and `body_text` come from prepare_body; reasons and channels
    are free-form ids.
    """
    reasons = [sanitize_text(reason).strip() for reason in reasons if sanitize_text(reason).strip()]
    channels = [sanitize_text(channel).strip() for channel in channels if sanitize_text(channel).strip()]
    client_ids = list(dict.fromkeys(client_ids))

    scheduled_at = resolve_schedule(send_now, schedule_date, schedule_time)

    clients = repository.get_many_active(client_ids)
    if len(clients) != len(client_ids):
        return PlanResult(False, "Seçilen müşterilerden bazıları bulunamadı. Lütfen sayfayı yenileyip tekrar deneyin.")

    final_html = body_html + build_summary_html(clients, _portfolio_chart(clients))
    final_text = extract_plain_text(final_html)

    sent, failed, preview = 0, [], None
    if send_now:
        if not any(client.email for client in clients):
            return PlanResult(False, "Seçilen müşteriler için geçerli e-posta adresi bulunamadı. Lütfen adresleri ekleyin.")
        sent, failed, preview = _send_now(clients, subject, final_html, consultant_name)
        if sent == 0:
            return PlanResult(False, "E-posta gönderilemedi. Lütfen SMTP ayarlarınızı kontrol edin.", failed=failed)

    if send_now:
        status, channel_status = CommunicationCampaign.STATUS_COMPLETED, 'SENT'
    elif scheduled_at is not None:
        status, channel_status = CommunicationCampaign.STATUS_SCHEDULED, 'SCHEDULED'
    else:
        status, channel_status = CommunicationCampaign.STATUS_DRAFT, 'PENDING'

    try:
        campaign = repository.create_campaign(
            subject=subject,
            body_html=final_html,
            body_text=final_text,
            scheduled_at=scheduled_at,
            status=status,
            reasons_json=json.dumps(reasons, ensure_ascii=False),
        )
        repository.add_recipients(campaign, clients)
        completed_at = datetime.utcnow() if send_now else None
        for channel in channels:
            repository.add_channel_status(campaign, channel.upper(), channel_status,
                                          scheduled_at=scheduled_at, completed_at=completed_at)
        repository.commit()
    except SQLAlchemyError:
        repository.rollback()
        logger.error("Campaign insert failed", exc_info=True)
        return PlanResult(False, "Kampanya kaydedilemedi. Lütfen tekrar deneyin.")

    logger.info(f"Campaign {campaign.id} stored for owner {repository.owner_id} with status {status}")

    if send_now:
        preview_subject, preview_text = preview
        record_email_log(repository, preview_subject, preview_text, sent,
                         preview_length=CAMPAIGN_LOG_PREVIEW_LENGTH)
        failure_note = f", başarısız: {', '.join(failed)}" if failed else ""
        return PlanResult(
            True,
            f"E-posta {sent} müşteriye gönderildi{failure_note}.",
            scheduled_at=scheduled_at,
            recipients=sent,
            failed=failed,
            campaign_id=campaign.id,
        )

    return PlanResult(
        True,
        f"{len(client_ids)} müşteri için iletişim planı hazır.",
        scheduled_at=scheduled_at,
        campaign_id=campaign.id,
    )


def campaign_to_dict(campaign: CommunicationCampaign, include_body: bool = False) -> dict:
    reasons = json.loads(campaign.reasons_json) if campaign.reasons_json else []
    payload = {
        'id': campaign.id,
        'subject': campaign.subject,
        'status': campaign.status,
        'reasons': reasons,
        'reason_labels': format_reason_labels(reasons),
        'scheduled_at': campaign.scheduled_at.isoformat() if campaign.scheduled_at else None,
        'created_at': campaign.created_at.isoformat() if campaign.created_at else None,
        'recipient_count': len(campaign.recipients),
    }
    if include_body:
        payload['body_html'] = campaign.body_html
        payload['body_text'] = campaign.body_text
        payload['recipients'] = [
            {'client_id': recipient.client_id, 'name': recipient.client_name, 'email': recipient.client_email}
            for recipient in campaign.recipients
        ]
        payload['channels'] = [
            {
                'channel': status.channel,
                'status': status.status,
                'scheduled_at': status.scheduled_at.isoformat() if status.scheduled_at else None,
                'completed_at': status.completed_at.isoformat() if status.completed_at else None,
            }
            for status in campaign.channel_statuses
        ]
    return payload
