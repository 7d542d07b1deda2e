"""Files stored under UPLOAD_FOLDER and served from ``/uploads/<path>``."""

import os
import time

from flask import current_app
from werkzeug.utils import secure_filename

from fantasy.errors import ValidationError

ALLOWED_IMAGE_TYPES = {'image/png', 'image/jpeg', 'image/webp'}


def upload_dir(*parts):
    path = os.path.join(current_app.config['UPLOAD_FOLDER'], *parts)
    os.makedirs(path, exist_ok=True)
    return path


def public_url(*parts):
    return '/uploads/' + '/'.join(parts)


def save_image(upload, folder, stem):
    """Store an uploaded png/jpeg/webp as ``<folder>/<stem>_<ms><ext>``; returns the file name."""
    if upload is None:
        raise ValidationError('No file uploaded')
    if upload.mimetype not in ALLOWED_IMAGE_TYPES:
        raise ValidationError('Invalid file type')
    ext = os.path.splitext(secure_filename(upload.filename or ''))[1].lower() or '.png'
    file_name = f"{stem}_{int(time.time() * 1000)}{ext}"
    upload.save(os.path.join(upload_dir(folder), file_name))
    current_app.logger.info(f"[upload] folder={folder} file={file_name}")
    return file_name
