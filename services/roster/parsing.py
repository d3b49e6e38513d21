"""
Cell-level parsing for uploaded client files: delimiter detection, cell
cleaning, locale-ambiguous numbers and the accepted date formats.
"""

import math
import re
from datetime import date
from typing import List, Optional

_NON_NUMERIC = re.compile(r'[^\d,.\-]')
_THOUSANDS_PATTERN = re.compile(r'^\d{1,3}(\.\d{3})+$')
_LINE_BREAK = re.compile(r'\r?\n')

# (pattern, year/month/day group order), tried in this order
DATE_FORMATS = (
    (re.compile(r'^(\d{1,2})\.(\d{1,2})\.(\d{4})$'), ('day', 'month', 'year')),
    (re.compile(r'^(\d{1,2})/(\d{1,2})/(\d{4})$'), ('day', 'month', 'year')),
    (re.compile(r'^(\d{4})-(\d{1,2})-(\d{1,2})$'), ('year', 'month', 'day')),
    (re.compile(r'^(\d{1,2})-(\d{1,2})-(\d{4})$'), ('day', 'month', 'year')),
)


def split_lines(content: str) -> List[tuple]:
    """Return (1-based line number, trimmed line) for every non-blank line."""
    return [
        (number, line.strip())
        for number, line in enumerate(_LINE_BREAK.split(content), start=1)
        if line.strip()
    ]


def detect_delimiter(header_line: str) -> str:
    return ';' if ';' in header_line else ','


def split_row(line: str, delimiter: str) -> List[str]:
    return line.split(delimiter)


def clean_value(value: str) -> str:
    """Strip surrounding quotes and whitespace from one cell."""
    return value.strip().strip('"').strip()


def sanitise_email(value: str) -> str:
    # Mobile keyboards often type a comma for the dot in the domain
    return re.sub(r'\s+', '', value).replace(',', '.').lower()


def parse_number(raw: str) -> float:
    """
    Parse a money amount written with Turkish or English separators.

    Returns NaN when nothing numeric remains; the validator rejects it.
    """
    cleaned = _NON_NUMERIC.sub('', raw or '').strip()
    if not cleaned:
        return math.nan

    comma_count = cleaned.count(',')
    dot_count = cleaned.count('.')

    if comma_count and dot_count:
        if cleaned.rfind(',') > cleaned.rfind('.'):
            candidate = cleaned.replace('.', '').replace(',', '.')
        else:
            candidate = cleaned.replace(',', '')
    elif comma_count:
        if comma_count > 1:
            candidate = cleaned.replace(',', '')
        else:
            candidate = cleaned.replace(',', '.')
    elif dot_count and (_THOUSANDS_PATTERN.match(cleaned) or dot_count > 1):
        candidate = cleaned.replace('.', '')
    else:
        candidate = cleaned

    try:
        return float(candidate)
    except ValueError:
        return math.nan


def parse_date(value: str) -> Optional[date]:
    """First matching format wins; impossible dates (day 32) give None."""
    value = (value or '').strip()
    if not value:
        return None

    for pattern, order in DATE_FORMATS:
        match = pattern.match(value)
        if not match:
            continue
        parts = dict(zip(order, (int(group) for group in match.groups())))
        try:
            return date(parts['year'], parts['month'], parts['day'])
        except ValueError:
            return None
    return None
