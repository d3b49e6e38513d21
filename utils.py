# utils.py
"""
Formatting helpers shared by the services and routes.
"""

from datetime import date, datetime
from typing import Optional, Union

import pytz
from flask import current_app, has_app_context

TURKISH_MONTHS = (
    'Ocak', 'Şubat', 'Mart', 'Nisan', 'Mayıs', 'Haziran',
    'Temmuz', 'Ağustos', 'Eylül', 'Ekim', 'Kasım', 'Aralık',
)


def format_currency(amount) -> str:
    """
    Format an amount as Turkish lira, e.g. 1234.5 -> '₺1.234,50'.

    Args:
        amount: int, float or Decimal (None is treated as 0)

    Returns:
        Formatted currency string
    """
    value = float(amount or 0)
    sign = '-' if value < 0 else ''
    grouped = f"{abs(value):,.2f}"  # 1,234.50
    grouped = grouped.replace(',', 'X').replace('.', ',').replace('X', '.')
    return f"{sign}₺{grouped}"


def format_date_tr(value: Optional[Union[date, datetime]]) -> str:
    """DD.MM.YYYY, or an empty string for missing dates."""
    if value is None:
        return ''
    return f"{value.day:02d}.{value.month:02d}.{value.year}"


def format_month_label(value: Union[date, datetime]) -> str:
    return f"{TURKISH_MONTHS[value.month - 1]} {value.year}"


def normalise_string(value: Optional[str]) -> Optional[str]:
    """Trimmed string, or None when empty."""
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def get_app_timezone():
    """Helper function to get the timezone used for client-facing dates"""
    name = 'Europe/Istanbul'
    if has_app_context():
        name = current_app.config.get('APP_TIMEZONE', name)
    return pytz.timezone(name)


def local_now() -> datetime:
    return datetime.now(get_app_timezone())
