"""
Consultant profile updates, including the Supabase-hosted avatar.
"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import db, User
from services.roster import ActionResult
from services.supabase_storage import upload_avatar
from utils import normalise_string

logger = logging.getLogger(__name__)

MAX_AVATAR_BYTES = 5 * 1024 * 1024


def update_profile(user: User, name: str, email: str, phone: Optional[str] = None, bio: Optional[str] = None,
                   avatar_data: Optional[bytes] = None, avatar_filename: Optional[str] = None,
                   avatar_content_type: Optional[str] = None) -> ActionResult:
    if avatar_data:
        if len(avatar_data) > MAX_AVATAR_BYTES:
            return ActionResult(False, "Profil fotoğrafı 5MB boyutunu aşamaz.")
        try:
            photo_url, photo_path = upload_avatar(user.id, avatar_data, avatar_filename, avatar_content_type)
        except Exception as e:
            logger.error(f"Avatar upload failed for user {user.id}: {str(e)}")
            return ActionResult(False, "Profil fotoğrafı yüklenemedi.")
        user.photo_url = photo_url
        user.photo_path = photo_path

    user.name = name
    user.email = email
    user.phone = normalise_string(phone)
    user.bio = normalise_string(bio)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return ActionResult(False, "Bu e-posta adresi başka bir kullanıcı tarafından kullanılıyor.")
    except SQLAlchemyError:
        db.session.rollback()
        logger.error(f"Profile update failed for user {user.id}", exc_info=True)
        return ActionResult(False, "Profil güncellenirken bir hata oluştu.")

    return ActionResult(True, "Profil bilgileri güncellendi.")
