from flask import Blueprint
from flask_login import login_required, current_user

from services.client_service import build_dashboard_summary
from services.market_service import get_market_snapshot
from services.roster import OwnerScopedClientRepository

main_bp = Blueprint('main', __name__)


@main_bp.route('/')
@main_bp.route('/dashboard')
@login_required
def dashboard():
    summary = build_dashboard_summary(OwnerScopedClientRepository(current_user.id))
    summary['market'] = get_market_snapshot()
    return summary
