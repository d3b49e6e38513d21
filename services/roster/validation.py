"""
Per-kind validation of parsed row values.

Every failing constraint of a row is collected so the consultant sees all
problems of the offending line at once; the caller stops at that line.
"""

import math
from typing import Dict, Optional

from email_validator import EmailNotValidError, validate_email

from .exceptions import RowValidationError
from .parsing import parse_date, parse_number
from .types import ImportRow, TrackKind

INVALID_EMAIL = "Geçerli bir e-posta adresi gerekli."

# clients.first_savings / current_savings are Numeric(14, 2)
MAX_AMOUNT = 999_999_999_999.99


def is_valid_email(value: str) -> bool:
    if not value:
        return False
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def _amount_errors(value: float, label: str) -> Optional[str]:
    if math.isnan(value):
        return f"{label} sayısal bir değer olmalı."
    if value < 0:
        return f"{label} 0'dan küçük olamaz."
    if value > MAX_AMOUNT:
        return f"{label} en fazla 999.999.999.999,99 olabilir."
    return None


def validate_savings_row(values: Dict[str, str], line_number: int) -> ImportRow:
    messages = []

    name = values.get('name', '')
    email = values.get('email', '')
    if not name:
        messages.append("Ad soyad boş olamaz.")
    if not is_valid_email(email):
        messages.append(INVALID_EMAIL)

    first_savings = parse_number(values.get('first_savings', ''))
    current_savings = parse_number(values.get('current_savings', ''))
    for amount, label in ((first_savings, "İlk tasarruf tutarı"), (current_savings, "Güncel tasarruf tutarı")):
        error = _amount_errors(amount, label)
        if error:
            messages.append(error)

    if messages:
        raise RowValidationError(line_number, messages)

    return ImportRow(
        kind=TrackKind.SAVINGS,
        name=name,
        email=email,
        phone=values.get('phone') or None,
        birth_date=parse_date(values.get('birth_date', '')),
        first_savings=first_savings,
        current_savings=current_savings,
    )


def validate_policy_row(values: Dict[str, str], line_number: int) -> ImportRow:
    messages = []

    name = values.get('name', '')
    email = values.get('email', '')
    policy_type = values.get('policy_type', '')
    start_date = parse_date(values.get('policy_start_date', ''))
    end_date = parse_date(values.get('policy_end_date', ''))

    if not name:
        messages.append("Müşteri adı boş olamaz.")
    if not is_valid_email(email):
        messages.append(INVALID_EMAIL)
    if not policy_type:
        messages.append("Poliçe türü gerekli.")
    if start_date is None:
        messages.append("Poliçe başlangıç tarihi gerekli.")
    if end_date is None:
        messages.append("Poliçe bitiş tarihi gerekli.")

    if messages:
        raise RowValidationError(line_number, messages)

    return ImportRow(
        kind=TrackKind.POLICY,
        name=name,
        email=email,
        phone=values.get('phone') or None,
        policy_type=policy_type,
        policy_start_date=start_date,
        policy_end_date=end_date,
    )


VALIDATORS = {
    TrackKind.SAVINGS: validate_savings_row,
    TrackKind.POLICY: validate_policy_row,
}


def validate_row(values: Dict[str, str], kind: TrackKind, line_number: int) -> ImportRow:
    return VALIDATORS[kind](values, line_number)
