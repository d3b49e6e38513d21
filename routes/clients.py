from flask import Blueprint, current_app, request
from flask_login import login_required, current_user

from forms import ClientForm, ClientUploadForm, first_error
from services.client_service import (
    ClientInput, client_monthly_trend, create_client, delete_all_clients, delete_client,
    restore_client, update_client
)
from services.digest_service import send_client_digests
from services.roster import (
    OwnerScopedClientRepository, TrackKind, detect_schema_capabilities, import_clients
)
from utils import format_currency

clients_bp = Blueprint('clients', __name__)


def _repository():
    return OwnerScopedClientRepository(current_user.id)


def _respond(result):
    return result.to_dict(), (200 if result.success else 400)


def consultant_name():
    return current_user.name or current_app.config.get('DEFAULT_CONSULTANT_NAME', 'Danışmanınız')


def _client_input(form):
    return ClientInput(
        name=form.name.data,
        email=form.email.data.lower(),
        phone=form.phone.data,
        first_savings=form.first_savings.data or 0,
        current_savings=form.current_savings.data or 0,
        birth_date=form.birth_date.data,
        client_type=form.client_type.data,
        policy_type=form.policy_type.data,
        policy_start_date=form.policy_start_date.data,
        policy_end_date=form.policy_end_date.data,
    )


@clients_bp.route('/clients')
@login_required
def list_clients():
    repository = _repository()
    payload = {
        'clients': [client.to_dict() for client in repository.list_active()],
    }
    if request.args.get('deleted') == '1':
        payload['deleted'] = [client.to_dict() for client in repository.list_deleted()]
    return payload


@clients_bp.route('/clients/<int:client_id>')
@login_required
def view_client(client_id):
    repository = _repository()
    client = repository.get_active(client_id)
    if client is None:
        return {'success': False, 'message': 'Müşteri bulunamadı.'}, 404

    snapshots = repository.list_snapshots(client.id)
    return {
        'client': client.to_dict(),
        'current_savings_display': format_currency(client.current_savings),
        'snapshots': [
            {
                'id': snapshot.id,
                'amount': float(snapshot.amount),
                'recorded_at': snapshot.recorded_at.isoformat() if snapshot.recorded_at else None,
            }
            for snapshot in snapshots
        ],
        'trend': client_monthly_trend(snapshots).to_dict(),
    }


@clients_bp.route('/clients', methods=['POST'])
@login_required
def add_client():
    form = ClientForm()
    if not form.validate_on_submit():
        return {'success': False, 'message': first_error(form)}, 400
    return _respond(create_client(_repository(), _client_input(form)))


@clients_bp.route('/clients/<int:client_id>/edit', methods=['POST'])
@login_required
def edit_client(client_id):
    form = ClientForm()
    if not form.validate_on_submit():
        return {'success': False, 'message': first_error(form)}, 400
    result = update_client(_repository(), detect_schema_capabilities(), client_id, _client_input(form))
    return _respond(result)


@clients_bp.route('/clients/<int:client_id>/delete', methods=['POST'])
@login_required
def remove_client(client_id):
    return _respond(delete_client(_repository(), client_id))


@clients_bp.route('/clients/delete-all', methods=['POST'])
@login_required
def remove_all_clients():
    result = delete_all_clients(_repository())
    if result.success:
        current_app.logger.info(f"User {current_user.id} soft-deleted all clients")
    return _respond(result)


@clients_bp.route('/clients/<int:client_id>/restore', methods=['POST'])
@login_required
def undo_delete_client(client_id):
    return _respond(restore_client(_repository(), client_id))


@clients_bp.route('/clients/import', methods=['POST'])
@login_required
def import_client_file():
    form = ClientUploadForm()
    if not form.validate_on_submit():
        return {'success': False, 'message': first_error(form)}, 400
    kind = TrackKind.from_form_value(request.form.get('uploadType') or form.upload_type.data)

    upload = request.files.get('file')
    content = None
    filename = None
    if upload is not None and upload.filename:
        filename = upload.filename
        try:
            content = upload.stream.read().decode('utf-8-sig')
        except UnicodeDecodeError:
            return {'success': False, 'message': 'CSV dosyası işlenemedi.'}, 400

    result = import_clients(
        _repository(),
        detect_schema_capabilities(),
        content=content,
        kind=kind,
        filename=filename,
    )
    current_app.logger.info(f"Import by user {current_user.id} ({kind.value}): {result.message}")
    return _respond(result)


@clients_bp.route('/clients/send-digest', methods=['POST'])
@login_required
def send_digest():
    return _respond(send_client_digests(_repository(), consultant_name()))
