from datetime import date, datetime

from services.email_template import (
    DEFAULT_EMAIL_BODY, DEFAULT_EMAIL_SUBJECT, EMAIL_TEMPLATE_PLACEHOLDERS, DigestClient,
    apply_template, format_growth_percent, render_digest_email
)
from utils import format_currency, format_date_tr

TODAY = date(2024, 3, 5)


def ayse():
    return DigestClient(name='Ayşe Yılmaz', email='ayse@example.com', first_savings=1000,
                        current_savings=1500, start_date=datetime(2023, 1, 15, 9, 30))


def can():
    return DigestClient(name='Can Öz', email='can@example.com', first_savings=0,
                        current_savings=250, start_date=None)


class TestFormatting:
    def test_currency(self):
        assert format_currency(1234.5) == '₺1.234,50'
        assert format_currency(None) == '₺0,00'
        assert format_currency(-20) == '-₺20,00'

    def test_date(self):
        assert format_date_tr(date(2024, 3, 5)) == '05.03.2024'
        assert format_date_tr(None) == ''

    def test_growth_percent(self):
        assert format_growth_percent(1000, 1500) == '50.0%'
        assert format_growth_percent(1000, 900) == '-10.0%'
        assert format_growth_percent(0, 500) == '—'

    def test_apply_template_replaces_every_occurrence(self):
        assert apply_template('{{A}} ve {{A}}', {'{{A}}': 'x'}) == 'x ve x'


class TestRenderDigestEmail:
    def test_placeholder_catalogue(self):
        tokens = [item['token'] for item in EMAIL_TEMPLATE_PLACEHOLDERS]
        assert len(tokens) == 9
        assert '{{CLIENT_LIST}}' in tokens

    def test_single_client_with_default_template(self):
        email = render_digest_email(DEFAULT_EMAIL_SUBJECT, DEFAULT_EMAIL_BODY, 'Elif Demir', [ayse()], TODAY)

        assert email.subject == 'Sayın Ayşe Yılmaz, emeklilik fon özetiniz'
        assert 'Güncel tasarruf tutarınız: ₺1.500,00' in email.text
        assert 'İlk kayıtlı tutarınız: ₺1.000,00' in email.text
        assert 'Toplam büyüme: 50.0%' in email.text
        assert 'Sisteme katıldığınız tarih: 15.01.2023' in email.text
        assert 'Güncel tarih: 05.03.2024' in email.text
        assert 'danışmanınız Elif Demir' in email.text
        assert '{{' not in email.text

        assert email.html.startswith('<p>Sayın Ayşe Yılmaz,</p>')
        assert '₺1.500,00<br />İlk kayıtlı tutarınız' in email.html
        assert '<ul>' not in email.html
        assert 'MARKER' not in email.html

    def test_client_list_for_several_clients(self):
        email = render_digest_email(DEFAULT_EMAIL_SUBJECT, DEFAULT_EMAIL_BODY, 'Elif Demir', [ayse(), can()], TODAY)

        assert email.subject == 'Sayın Ayşe Yılmaz, emeklilik fon özetiniz'
        assert '- Ayşe Yılmaz: güncel tasarruf ₺1.500,00 (ilk kayıt ₺1.000,00, başlangıç 15.01.2023)' in email.text
        assert '- Can Öz: güncel tasarruf ₺250,00 (ilk kayıt ₺0,00, başlangıç -)' in email.text
        assert email.html.endswith('</ul>')
        assert email.html.count('<li>') == 2

    def test_html_escapes_client_values(self):
        client = DigestClient(name='<b>Ali</b>', email='ali@example.com', first_savings=1, current_savings=2)
        email = render_digest_email('Merhaba', 'Sayın {{CLIENT_NAME}},\n\n{{CLIENT_LIST}}', 'Elif',
                                    [client, ayse()], TODAY)

        assert '<p>Sayın &lt;b&gt;Ali&lt;/b&gt;,</p>' in email.html
        assert '<li><strong>&lt;b&gt;Ali&lt;/b&gt;</strong>' in email.html
        assert '<b>Ali</b>' in email.text

    def test_list_appended_when_template_has_no_marker(self):
        email = render_digest_email('Konu', 'Merhaba {{CLIENT_NAME}}', 'Elif', [ayse(), can()], TODAY)
        assert email.html.split('\n')[0] == '<p>Merhaba Ayşe Yılmaz</p>'
        assert email.html.split('\n')[-1].startswith('<ul>')

    def test_marker_inside_a_line_splits_paragraph(self):
        email = render_digest_email('Konu', 'Liste: {{CLIENT_LIST}} son', 'Elif', [ayse(), can()], TODAY)
        parts = email.html.split('\n')
        assert parts[0] == '<p>Liste:</p>'
        assert parts[1].startswith('<ul>')
        assert parts[2] == '<p>son</p>'

    def test_no_clients_leaves_client_values_blank(self):
        email = render_digest_email('{{CONSULTANT_NAME}} - {{CURRENT_DATE}}', 'Sayın {{CLIENT_NAME}},', 'Elif', [], TODAY)
        assert email.subject == 'Elif - 05.03.2024'
        assert email.text == 'Sayın ,'
