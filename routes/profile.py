from flask import Blueprint
from flask_login import login_required, current_user

from forms import ProfileForm, first_error
from services.profile_service import update_profile

profile_bp = Blueprint('profile', __name__)


@profile_bp.route('/profile')
@login_required
def view_profile():
    return {
        'id': current_user.id,
        'name': current_user.name,
        'email': current_user.email,
        'phone': current_user.phone,
        'bio': current_user.bio,
        'photo_url': current_user.photo_url,
    }


@profile_bp.route('/profile', methods=['POST'])
@login_required
def save_profile():
    form = ProfileForm()
    if not form.validate_on_submit():
        return {'success': False, 'message': first_error(form)}, 400

    avatar = form.avatar.data
    avatar_data = avatar.read() if avatar else None

    result = update_profile(
        current_user,
        name=form.name.data,
        email=form.email.data,
        phone=form.phone.data,
        bio=form.bio.data,
        avatar_data=avatar_data,
        avatar_filename=avatar.filename if avatar else None,
        avatar_content_type=avatar.mimetype if avatar else None,
    )
    return result.to_dict(), (200 if result.success else 400)
