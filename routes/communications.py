import openai
from flask import Blueprint, current_app
from flask_login import login_required, current_user

from forms import AIDraftForm, CommunicationPlanForm, DigestSendForm, EmailTemplateForm, first_error
from services.ai_service import (
    AI_MARKET_TOPICS, AIDraftError, MissingOpenAIApiKeyError, build_draft_prompt, generate_email_draft
)
from services.communication_service import (
    COMMUNICATION_REASONS, campaign_to_dict, plan_communication, prepare_body
)
from services.digest_service import (
    load_email_template, reset_email_template, save_email_template, send_client_digests
)
from services.email_template import DEFAULT_EMAIL_BODY, DEFAULT_EMAIL_SUBJECT, EMAIL_TEMPLATE_PLACEHOLDERS
from services.roster import OwnerScopedClientRepository

communications_bp = Blueprint('communications', __name__)


def _repository():
    return OwnerScopedClientRepository(current_user.id)


def _consultant_name():
    return current_user.name or current_app.config.get('DEFAULT_CONSULTANT_NAME', 'Danışmanınız')


@communications_bp.route('/communications')
@login_required
def overview():
    repository = _repository()
    return {
        'template': load_email_template(repository),
        'placeholders': EMAIL_TEMPLATE_PLACEHOLDERS,
        'topics': [{key: topic[key] for key in ('id', 'label', 'description')} for topic in AI_MARKET_TOPICS],
        'reasons': COMMUNICATION_REASONS,
        'clients': [
            {'id': client.id, 'name': client.name, 'email': client.email}
            for client in repository.list_active()
        ],
    }


@communications_bp.route('/communications/template', methods=['POST'])
@login_required
def update_template():
    form = EmailTemplateForm()
    if not form.validate_on_submit():
        return {'success': False, 'message': first_error(form, 'Şablon kaydedilemedi.')}, 400

    result = save_email_template(_repository(), form.subject.data, form.body.data)
    payload = result.to_dict()
    payload.update(subject=form.subject.data, body=form.body.data)
    return payload, (200 if result.success else 400)


@communications_bp.route('/communications/template/reset', methods=['POST'])
@login_required
def restore_default_template():
    result = reset_email_template(_repository())
    payload = result.to_dict()
    if result.success:
        payload.update(subject=DEFAULT_EMAIL_SUBJECT, body=DEFAULT_EMAIL_BODY)
    return payload, (200 if result.success else 400)


@communications_bp.route('/communications/ai-draft', methods=['POST'])
@login_required
def ai_draft():
    form = AIDraftForm()
    if not form.validate_on_submit():
        return {'success': False, 'message': first_error(form, 'İstek anlaşılamadı.')}, 400

    try:
        draft = generate_email_draft(build_draft_prompt(form.prompt.data, form.topics.data), form.tone.data)
    except MissingOpenAIApiKeyError:
        return {'success': False, 'message': 'Yapay zeka için OPENAI_API_KEY ortam değişkenini tanımlayın.'}, 400
    except (AIDraftError, openai.OpenAIError) as e:
        current_app.logger.error(f"AI draft failed for user {current_user.id}: {str(e)}")
        return {'success': False, 'message': str(e) or 'Taslak oluşturulamadı.'}, 502

    return {
        'success': True,
        'message': 'Yapay zeka taslağı hazırlandı. Gerekirse düzenleyebilirsiniz.',
        'subject': draft['subject'],
        'body': draft['body'],
    }


@communications_bp.route('/communications/send', methods=['POST'])
@login_required
def send_digests():
    form = DigestSendForm()
    if not form.validate_on_submit():
        return {'success': False, 'message': first_error(form, 'Gönderilecek en az bir müşteri seçin.')}, 400

    result = send_client_digests(_repository(), _consultant_name(), client_ids=form.client_ids.data)
    return result.to_dict(), (200 if result.success else 400)


@communications_bp.route('/communications/plan', methods=['POST'])
@login_required
def plan():
    form = CommunicationPlanForm()
    form_valid = form.validate_on_submit()
    body_html, body_text, body_error = prepare_body(form.body.data)

    if not form_valid or body_error:
        form.body.errors = [body_error] if body_error else []
        return {'success': False, 'message': first_error(form, 'Formu kontrol edip tekrar deneyin.')}, 400

    result = plan_communication(
        _repository(),
        _consultant_name(),
        client_ids=form.client_ids.data,
        reasons=form.reasons.data,
        channels=form.channels.data,
        subject=form.subject.data,
        body_html=body_html,
        body_text=body_text,
        send_now=form.send_now.data,
        schedule_date=form.schedule_date.data,
        schedule_time=form.schedule_time.data,
    )
    return result.to_dict(), (200 if result.success else 400)


@communications_bp.route('/communications/campaigns')
@login_required
def list_campaigns():
    return {'campaigns': [campaign_to_dict(campaign) for campaign in _repository().list_campaigns()]}


@communications_bp.route('/communications/campaigns/<int:campaign_id>')
@login_required
def view_campaign(campaign_id):
    campaign = _repository().get_campaign(campaign_id)
    if campaign is None:
        return {'success': False, 'message': 'Kampanya bulunamadı.'}, 404
    return {'campaign': campaign_to_dict(campaign, include_body=True)}
