"""
Input sanitising for user-entered email content.

Plain-text fields lose characters that could form markup; rich-text
bodies from the editor are cleaned with bleach down to a small tag set.
"""

import html
import re

import bleach

ALLOWED_RICH_TEXT_TAGS = ['p', 'br', 'strong', 'b', 'em', 'i', 'u', 'ul', 'ol', 'li', 'span', 'h1', 'h2', 'h3']

_DIV_OPEN = re.compile(r'<div(\s[^>]*)?>', re.IGNORECASE)
_DIV_CLOSE = re.compile(r'</div\s*>', re.IGNORECASE)
_EMBEDDED = re.compile(r'<(script|style)[^>]*>.*?</\1\s*>', re.IGNORECASE | re.DOTALL)
_EMPTY_PARAGRAPH = re.compile(r'<p>\s*</p>', re.IGNORECASE)
_TAG = re.compile(r'<[^>]*>')
_WHITESPACE = re.compile(r'\s+')


def sanitize_text(value: str) -> str:
    return re.sub(r'[<>"\'&]', '', value or '')


def sanitize_rich_text(value: str) -> str:
    """Clean editor HTML. Empty input gives ''; markup that cleans down to nothing gives '<p></p>'."""
    if not value:
        return ''

    cleaned = _EMBEDDED.sub('', value)
    cleaned = _DIV_OPEN.sub('<p>', cleaned)
    cleaned = _DIV_CLOSE.sub('</p>', cleaned)
    cleaned = bleach.clean(
        cleaned,
        tags=ALLOWED_RICH_TEXT_TAGS,
        attributes={},
        strip=True,
        strip_comments=True,
    )
    cleaned = _EMPTY_PARAGRAPH.sub('', cleaned)
    cleaned = cleaned.replace('&nbsp;', ' ').replace('\xa0', ' ')
    cleaned = re.sub(r'\s{2,}', ' ', cleaned).strip()
    return cleaned or '<p></p>'


def extract_plain_text(value: str) -> str:
    if not value:
        return ''
    without_tags = _TAG.sub(' ', value)
    return _WHITESPACE.sub(' ', sanitize_text(html.unescape(without_tags))).strip()
