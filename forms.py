import math

from flask_wtf import FlaskForm
from flask_wtf.file import FileField, FileSize
from wtforms import (
    StringField, PasswordField, SubmitField, TextAreaField, SelectField, SelectMultipleField,
    BooleanField, DateField, TimeField
)
from wtforms.validators import DataRequired, Email, Length, Optional, StopValidation, ValidationError

from services.roster.parsing import parse_number
from services.roster.validation import MAX_AMOUNT
from services.sanitize import sanitize_text

CLIENT_TYPE_CHOICES = [('', '-'), ('BES', 'BES'), ('ES', 'ES'), ('BES+ES', 'BES+ES')]
MAX_AVATAR_BYTES = 5 * 1024 * 1024


def first_error(form, default='Bilgiler doğrulanamadı.'):
    """First validation message in field declaration order."""
    for field in form:
        if field.errors:
            return field.errors[0]
    return default


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _clean_text(value):
    return sanitize_text(value) if value is not None else value


class MoneyField(StringField):
    """Accepts '1.234,56' style input; empty means 0. `data` is a float or NaN."""

    def process_formdata(self, valuelist):
        raw = valuelist[0] if valuelist else ''
        self.raw_value = raw
        self.data = 0.0 if not (raw or '').strip() else parse_number(raw)


class NonNegativeAmount:
    def __init__(self, label):
        self.label = label

    def __call__(self, form, field):
        value = field.data if field.data is not None else 0.0
        if isinstance(value, float) and math.isnan(value):
            raise ValidationError(f"{self.label} sayısal bir değer olmalı.")
        if value < 0:
            raise ValidationError(f"{self.label} pozitif olmalı.")
        if value > MAX_AMOUNT:
            raise ValidationError(f"{self.label} en fazla 999.999.999.999,99 olabilir.")


class RequiredUnlessSendNow:
    """Schedule fields are ignored for send-now plans and required otherwise."""

    def __init__(self, message):
        self.message = message

    def __call__(self, form, field):
        empty = not field.raw_data or not (field.raw_data[0] or '').strip()
        if form.send_now.data or empty:
            field.errors[:] = []
            raise StopValidation(None if form.send_now.data else self.message)


class LoginForm(FlaskForm):
    email = StringField('E-posta', filters=[_strip], validators=[
        DataRequired(message='Lütfen e-posta adresinizi girin.')
    ])
    password = PasswordField('Şifre', validators=[
        DataRequired(message='Lütfen şifrenizi girin.')
    ])
    submit = SubmitField('Giriş yap')


class ClientForm(FlaskForm):
    name = StringField('Ad Soyad', filters=[_strip], validators=[
        DataRequired(message='Müşteri adı gerekli.'),
        Length(min=2, message='Müşteri adı gerekli.'),
    ])
    email = StringField('E-posta', filters=[_strip], validators=[
        DataRequired(message='Geçerli bir e-posta adresi gerekli.'),
        Email(message='Geçerli bir e-posta adresi gerekli.', check_deliverability=False),
    ])
    phone = StringField('Telefon', filters=[_strip], validators=[
        Optional(), Length(max=40, message='Telefon alanı çok uzun.')
    ])
    birth_date = DateField('Doğum Tarihi', validators=[Optional()])
    client_type = SelectField('Müşteri Tipi', choices=CLIENT_TYPE_CHOICES, default='',
                              validate_choice=False, filters=[_strip])
    policy_type = StringField('Poliçe Türü', filters=[_strip], validators=[Optional(), Length(max=120)])
    policy_start_date = DateField('Poliçe Başlangıç Tarihi', validators=[Optional()])
    policy_end_date = DateField('Poliçe Bitiş Tarihi', validators=[Optional()])
    first_savings = MoneyField('İlk Tasarruf', validators=[NonNegativeAmount('İlk tasarruf tutarı')])
    current_savings = MoneyField('Güncel Tasarruf', validators=[NonNegativeAmount('Güncel tasarruf tutarı')])
    submit = SubmitField('Kaydet')


class ClientUploadForm(FlaskForm):
    upload_type = SelectField('Yükleme Tipi', choices=[('BES', 'BES'), ('ES', 'ES')], default='BES',
                              validate_choice=False)
    file = FileField('CSV Dosyası')


class ProfileForm(FlaskForm):
    name = StringField('İsim', filters=[_strip], validators=[
        DataRequired(message='İsim en az 2 karakter olmalı.'),
        Length(min=2, message='İsim en az 2 karakter olmalı.'),
    ])
    email = StringField('E-posta', filters=[_strip], validators=[
        DataRequired(message='Geçerli bir e-posta girin.'),
        Email(message='Geçerli bir e-posta girin.', check_deliverability=False),
    ])
    phone = StringField('Telefon', filters=[_strip], validators=[
        Optional(), Length(max=40, message='Telefon alanı çok uzun.')
    ])
    bio = TextAreaField('Hakkımda', filters=[_strip], validators=[
        Optional(), Length(max=280, message='Hakkımda alanı en fazla 280 karakter olabilir.')
    ])
    avatar = FileField('Profil Fotoğrafı', validators=[
        FileSize(max_size=MAX_AVATAR_BYTES, message='Profil fotoğrafı 5MB boyutunu aşamaz.')
    ])
    submit = SubmitField('Kaydet')


class EmailTemplateForm(FlaskForm):
    subject = StringField('Konu', filters=[_clean_text], validators=[
        DataRequired(message='Konu en az 3 karakter olmalıdır.'),
        Length(min=3, message='Konu en az 3 karakter olmalıdır.'),
        Length(max=140, message='Konu en fazla 140 karakter olabilir.'),
    ])
    body = TextAreaField('E-posta Gövdesi', filters=[_clean_text], validators=[
        DataRequired(message='E-posta gövdesi en az 20 karakter olmalıdır.'),
        Length(min=20, message='E-posta gövdesi en az 20 karakter olmalıdır.'),
        Length(max=8000, message='E-posta gövdesi en fazla 8000 karakter olabilir.'),
    ])


class AIDraftForm(FlaskForm):
    prompt = TextAreaField('İstek', filters=[_clean_text], validators=[
        DataRequired(message='Lütfen e-posta için daha detaylı bir istek yazın.'),
        Length(min=10, message='Lütfen e-posta için daha detaylı bir istek yazın.'),
    ])
    tone = SelectField('Ton', choices=[('formal', 'Resmi'), ('friendly', 'Samimi')], default='formal')
    # Unknown topic ids are ignored when the prompt is built
    topics = SelectMultipleField('Piyasa Başlıkları', validate_choice=False)


class DigestSendForm(FlaskForm):
    client_ids = SelectMultipleField('Müşteriler', coerce=int, validate_choice=False)

    def validate_client_ids(self, field):
        if not field.data:
            raise ValidationError('Gönderilecek en az bir müşteri seçmelisiniz.')


class CommunicationPlanForm(FlaskForm):
    client_ids = SelectMultipleField('Müşteriler', coerce=int, validate_choice=False)
    reasons = SelectMultipleField('İletişim Sebepleri', validate_choice=False)
    subject = StringField('Konu', filters=[_clean_text], validators=[
        Length(min=3, message='Konu en az 3 karakter olmalıdır.'),
        Length(max=140, message='Konu en fazla 140 karakter olabilir.'),
    ])
    body = TextAreaField('İçerik')
    channels = SelectMultipleField('Kanallar', validate_choice=False)
    send_now = BooleanField('Hemen Gönder', false_values=('false', '0', '', 'off'))
    schedule_date = DateField('Tarih', validators=[RequiredUnlessSendNow('Lütfen planlanan tarihi seçin.')])
    schedule_time = TimeField('Saat', validators=[RequiredUnlessSendNow('Lütfen planlanan saati seçin.')])

    def validate_client_ids(self, field):
        if not field.data:
            raise ValidationError('En az bir müşteri seçmelisiniz.')

    def validate_reasons(self, field):
        if not [reason for reason in (field.data or []) if reason.strip()]:
            raise ValidationError('En az bir iletişim sebebi seçmelisiniz.')

    def validate_channels(self, field):
        if not [channel for channel in (field.data or []) if channel.strip()]:
            raise ValidationError('En az bir iletişim kanalı seçmelisiniz.')
