"""
Savings digest email templates.

Templates are plain text with {{TOKEN}} placeholders. Rendering produces a
subject, a text body and an HTML body (blank-line separated paragraphs,
escaped, with an optional <ul> client list in place of {{CLIENT_LIST}}).
"""

import html
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional

from utils import format_currency, format_date_tr

EMAIL_TEMPLATE_PLACEHOLDERS = [
    {'token': '{{CONSULTANT_NAME}}', 'description': 'Danışman adı veya varsayılan hitap'},
    {'token': '{{CLIENT_NAME}}', 'description': 'Müşterinin adı'},
    {'token': '{{CLIENT_EMAIL}}', 'description': 'Müşterinin e-posta adresi'},
    {'token': '{{CURRENT_SAVINGS}}', 'description': 'Müşterinin güncel tasarruf tutarı'},
    {'token': '{{FIRST_SAVINGS}}', 'description': 'Müşterinin ilk kayıtlı tasarruf tutarı'},
    {'token': '{{SAVINGS_GROWTH}}', 'description': 'Müşterinin tasarruf büyüme yüzdesi'},
    {'token': '{{CLIENT_START_DATE}}', 'description': 'Müşterinin sisteme katıldığı tarih'},
    {'token': '{{CURRENT_DATE}}', 'description': 'E-postanın gönderildiği tarih (TR formatında)'},
    {'token': '{{CLIENT_LIST}}', 'description': 'Birden fazla müşteri seçildiğinde hepsini listeler'},
]

DEFAULT_EMAIL_SUBJECT = "Sayın {{CLIENT_NAME}}, emeklilik fon özetiniz"

DEFAULT_EMAIL_BODY = "\n".join([
    "Sayın {{CLIENT_NAME}},",
    "",
    "Güncel tasarruf tutarınız: {{CURRENT_SAVINGS}}",
    "İlk kayıtlı tutarınız: {{FIRST_SAVINGS}}",
    "Toplam büyüme: {{SAVINGS_GROWTH}}",
    "Sisteme katıldığınız tarih: {{CLIENT_START_DATE}}",
    "",
    "Güncel tarih: {{CURRENT_DATE}}",
    "",
    "Sorularınız için danışmanınız {{CONSULTANT_NAME}} ile iletişime geçebilirsiniz.",
    "",
    "{{CLIENT_LIST}}",
])

CLIENT_LIST_TOKEN = '{{CLIENT_LIST}}'
_CLIENT_LIST_MARKER = '__CLIENT_LIST_MARKER__'


@dataclass
class DigestClient:
    name: str
    email: Optional[str] = None
    first_savings: float = 0
    current_savings: float = 0
    start_date: Optional[datetime] = None


@dataclass
class RenderedEmail:
    subject: str
    text: str
    html: str


def format_growth_percent(first_savings, current_savings) -> str:
    first = float(first_savings or 0)
    current = float(current_savings or 0)
    if first == 0:
        return '—'
    return f"{(current - first) / first * 100:.1f}%"


def apply_template(template: str, replacements: Dict[str, str]) -> str:
    result = template
    for token, value in replacements.items():
        result = result.replace(token, value)
    return result


def build_placeholder_map(consultant_name: str, current_date: str, client_name: str = '',
                          client_email: Optional[str] = None, first_savings=0, current_savings=0,
                          start_date: Optional[date] = None, growth: Optional[str] = None) -> Dict[str, str]:
    """
    Replacement values for one recipient.

    Args:
        growth: Pre-formatted growth value; defaults to the percentage change
    """
    return {
        '{{CONSULTANT_NAME}}': consultant_name,
        '{{CURRENT_DATE}}': current_date,
        '{{CLIENT_NAME}}': client_name or '',
        '{{CLIENT_EMAIL}}': client_email or '',
        '{{CURRENT_SAVINGS}}': format_currency(current_savings),
        '{{FIRST_SAVINGS}}': format_currency(first_savings),
        '{{SAVINGS_GROWTH}}': growth if growth is not None else format_growth_percent(first_savings, current_savings),
        '{{CLIENT_START_DATE}}': format_date_tr(start_date),
        CLIENT_LIST_TOKEN: '',
    }


def _client_list_entries(clients: List[DigestClient]) -> List[tuple]:
    if len(clients) < 2:
        return []
    entries = []
    for client in clients:
        current = format_currency(client.current_savings)
        initial = format_currency(client.first_savings)
        start = format_date_tr(client.start_date) or '-'
        text = f"- {client.name}: güncel tasarruf {current} (ilk kayıt {initial}, başlangıç {start})"
        markup = (
            f"<li><strong>{html.escape(client.name)}</strong> — güncel tasarruf {html.escape(current)} "
            f"(ilk kayıt {html.escape(initial)}, başlangıç {html.escape(start)})</li>"
        )
        entries.append((text, markup))
    return entries


def build_html_body(template: str, replacements: Dict[str, str], client_list_html: str) -> str:
    """Blank lines separate paragraphs; the client list becomes its own block."""
    replaced = apply_template(template.replace(CLIENT_LIST_TOKEN, _CLIENT_LIST_MARKER), replacements)
    parts = []
    paragraph = []

    def flush():
        if paragraph:
            parts.append('<p>' + '<br />'.join(html.escape(line) for line in paragraph) + '</p>')
            paragraph.clear()

    for line in replaced.split('\n'):
        if _CLIENT_LIST_MARKER in line:
            segments = line.split(_CLIENT_LIST_MARKER)
            for index, segment in enumerate(segments):
                if segment.strip():
                    paragraph.append(segment.strip())
                if index < len(segments) - 1:
                    flush()
                    if client_list_html:
                        parts.append(client_list_html)
        elif not line.strip():
            flush()
        else:
            paragraph.append(line.strip())

    flush()
    if _CLIENT_LIST_MARKER not in replaced and client_list_html:
        parts.append(client_list_html)
    return '\n'.join(parts)


def render_digest_email(subject_template: str, body_template: str, consultant_name: str,
                        clients: List[DigestClient], current_date: Optional[date] = None) -> RenderedEmail:
    """
    Render a digest for one or more clients.

    The first client fills the per-client placeholders; with two or more
    clients {{CLIENT_LIST}} lists all of them.
    """
    date_label = format_date_tr(current_date or date.today())
    primary = clients[0] if clients else None

    if primary is not None:
        replacements = build_placeholder_map(
            consultant_name, date_label,
            client_name=primary.name,
            client_email=primary.email,
            first_savings=primary.first_savings,
            current_savings=primary.current_savings,
            start_date=primary.start_date,
        )
    else:
        replacements = {token['token']: '' for token in EMAIL_TEMPLATE_PLACEHOLDERS}
        replacements['{{CONSULTANT_NAME}}'] = consultant_name
        replacements['{{CURRENT_DATE}}'] = date_label

    entries = _client_list_entries(clients)
    if entries:
        replacements[CLIENT_LIST_TOKEN] = '\n'.join(text for text, _ in entries)
    client_list_html = f"<ul>{''.join(markup for _, markup in entries)}</ul>" if entries else ''

    return RenderedEmail(
        subject=apply_template(subject_template, replacements),
        text=apply_template(body_template, replacements),
        html=build_html_body(body_template, replacements, client_list_html),
    )
