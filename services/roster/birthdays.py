"""
Birthday campaign trigger.

After an import, savings rows whose birth date falls on today's month and
day get one shared draft campaign. This is best-effort: any storage
failure is logged and the import result is left untouched.
"""

import logging
from datetime import date, datetime
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from models import CommunicationCampaign
from .repository import OwnerScopedClientRepository
from .types import BirthdayCandidate, ImportRow, TrackKind

logger = logging.getLogger(__name__)

BIRTHDAY_SUBJECT = "Doğum Gününüz Kutlu Olsun! 🎉"

BIRTHDAY_BODY_TEXT = """Sayın {{CLIENT_NAME}},

Doğum gününüzü kutlar, sağlık, mutluluk ve başarı dolu bir yaş dileriz!

Emeklilik tasarruflarınızda da bu özel günde size güzel haberler verebilmek istiyoruz:
- Güncel tasarrufunuz: {{CURRENT_SAVINGS}}
- İlk kayıt tutarınız: {{FIRST_SAVINGS}}
- Büyüme oranınız: {{SAVINGS_GROWTH}}

Özel gününüzü kutlar, nice mutlu yıllar dileriz!

Saygılarımızla,
{{CONSULTANT_NAME}}"""

BIRTHDAY_BODY_HTML = BIRTHDAY_BODY_TEXT.replace('\n', '<br>')


def is_birthday_today(birth_date: Optional[date], today: Optional[date] = None) -> bool:
    if birth_date is None:
        return False
    today = today or date.today()
    return (birth_date.month, birth_date.day) == (today.month, today.day)


def find_birthday_candidates(rows: Iterable[ImportRow], today: Optional[date] = None) -> List[BirthdayCandidate]:
    """Scan the imported rows (not stored clients) for today's birthdays."""
    return [
        BirthdayCandidate(
            name=row.name,
            email=row.email,
            birth_date=row.birth_date,
            first_savings=row.first_savings,
            current_savings=row.current_savings,
        )
        for row in rows
        if row.kind is TrackKind.SAVINGS and is_birthday_today(row.birth_date, today)
    ]


def create_birthday_campaign(repository: OwnerScopedClientRepository,
                             candidates: List[BirthdayCandidate],
                             now: Optional[datetime] = None) -> Optional[CommunicationCampaign]:
    if not candidates:
        return None

    try:
        campaign = repository.create_campaign(
            subject=BIRTHDAY_SUBJECT,
            body_html=BIRTHDAY_BODY_HTML,
            body_text=BIRTHDAY_BODY_TEXT,
            scheduled_at=now or datetime.utcnow(),
            status=CommunicationCampaign.STATUS_DRAFT,
        )
        repository.commit()
    except SQLAlchemyError:
        repository.rollback()
        logger.error("Birthday campaign creation failed", exc_info=True)
        return None

    try:
        for candidate in candidates:
            repository.add_recipient(campaign, candidate.name, candidate.email)
        repository.commit()
    except SQLAlchemyError:
        repository.rollback()
        logger.error(f"Birthday recipients creation failed for campaign {campaign.id}", exc_info=True)

    logger.info(f"Created birthday campaign {campaign.id} with {len(candidates)} recipients")
    return campaign
