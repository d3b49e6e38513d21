from flask import Blueprint, current_app
from flask_login import login_user, logout_user, login_required, current_user
from sqlalchemy import func

from forms import LoginForm, first_error
from models import User

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/login', methods=['POST'])
def login():
    if current_user.is_authenticated:
        return {'success': True, 'message': 'Zaten giriş yaptınız.'}

    form = LoginForm()
    if not form.validate_on_submit():
        return {'success': False, 'message': first_error(form)}, 400

    user = User.query.filter(func.lower(User.email) == form.email.data.lower()).first()
    if user is None or not user.check_password(form.password.data):
        current_app.logger.info(f"Failed login for {form.email.data}")
        return {'success': False, 'message': 'E-posta veya şifre hatalı.'}, 401

    login_user(user)
    return {'success': True, 'message': 'Giriş yapıldı.'}


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return {'success': True, 'message': 'Çıkış yapıldı.'}
