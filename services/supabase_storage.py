"""
Supabase Storage Service for consultant avatars.

Avatars live in a public bucket, one folder per consultant, and are
referenced by their public URL.
"""

import uuid

from flask import current_app
from supabase import create_client, Client

# Supabase client singleton
_supabase_client: Client = None

DEFAULT_AVATAR_BUCKET = 'avatars'


def get_supabase_client() -> Client:
    """
    Get or create the Supabase client.
    Uses SUPABASE_URL and SUPABASE_KEY from the app config.
    """
    global _supabase_client

    if _supabase_client is None:
        supabase_url = current_app.config.get('SUPABASE_URL')
        supabase_key = current_app.config.get('SUPABASE_KEY')

        if not supabase_url or not supabase_key:
            raise ValueError(
                "SUPABASE_URL and SUPABASE_KEY environment variables are required. "
                "Get these from your Supabase project settings."
            )

        _supabase_client = create_client(supabase_url, supabase_key)

    return _supabase_client


def generate_avatar_path(owner_id: int, original_filename: str) -> str:
    """<owner_id>/<uuid>.<ext>, defaulting the extension to jpg."""
    ext = 'jpg'
    if '.' in (original_filename or ''):
        ext = original_filename.rsplit('.', 1)[1].lower() or 'jpg'
    return f"{owner_id}/{uuid.uuid4()}.{ext}"


def upload_avatar(owner_id: int, file_data: bytes, original_filename: str, content_type: str = None) -> tuple:
    """
    Upload an avatar image and return its public URL.

    Args:
        owner_id: Consultant id, used as the folder name
        file_data: The file content as bytes
        original_filename: The original filename from the upload
        content_type: MIME type of the file (optional)

    Returns:
        tuple: (public_url, storage_path)

    Raises:
        Exception on upload failure
    """
    client = get_supabase_client()
    bucket = current_app.config.get('AVATAR_BUCKET') or DEFAULT_AVATAR_BUCKET
    storage_path = generate_avatar_path(owner_id, original_filename)

    client.storage.from_(bucket).upload(
        path=storage_path,
        file=file_data,
        file_options={
            'content-type': content_type or 'image/jpeg',
            'cache-control': '3600',
            'upsert': 'true',
        }
    )

    public_url = client.storage.from_(bucket).get_public_url(storage_path)
    return public_url, storage_path
