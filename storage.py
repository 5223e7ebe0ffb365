"""
Blob storage for uploaded images (payment proofs, room images, profile pictures).

The rest of the app only sees ``BlobStore.save(file, folder) -> reference``.
``LocalBlobStore`` keeps files on disk under UPLOAD_FOLDER and returns a URL
path served by the ``/uploads`` route.
"""

import logging
import os
import re
import uuid

from werkzeug.utils import secure_filename

from errors import UploadError

logger = logging.getLogger(__name__)

IMAGE_TYPES = re.compile(r'jpeg|jpg|png|gif|webp')


class BlobStore:
    """Interface for blob storage providers"""

    def save(self, file, folder):
        raise NotImplementedError


def validate_image(file, max_bytes, allowed_extensions):
    """Reject missing, non-image or oversized uploads"""
    if file is None or not file.filename:
        raise UploadError('No file selected!')

    _, ext = os.path.splitext(file.filename)
    ext = ext.lower().lstrip('.')
    if ext not in allowed_extensions or not IMAGE_TYPES.search(ext) \
            or not IMAGE_TYPES.search(file.mimetype or ''):
        raise UploadError('Error: Images Only!')

    file.stream.seek(0, os.SEEK_END)
    size = file.stream.tell()
    file.stream.seek(0)
    if size > max_bytes:
        raise UploadError('File too large')


class LocalBlobStore(BlobStore):
    def __init__(self, root, url_prefix='/uploads', max_bytes=2_000_000,
                 allowed_extensions=('jpg', 'jpeg', 'png', 'gif', 'webp')):
        self.root = root
        self.url_prefix = url_prefix.rstrip('/')
        self.max_bytes = max_bytes
        self.allowed_extensions = set(allowed_extensions)

    def save(self, file, folder):
        validate_image(file, self.max_bytes, self.allowed_extensions)

        name = f"{uuid.uuid4().hex}_{secure_filename(file.filename)}"
        directory = os.path.join(self.root, folder)
        try:
            os.makedirs(directory, exist_ok=True)
            file.save(os.path.join(directory, name))
        except OSError as exc:
            logger.error("Storing upload %s failed: %s", name, exc)
            raise UploadError('File upload error') from exc

        logger.info("Stored upload %s/%s", folder, name)
        return f"{self.url_prefix}/{folder}/{name}"


def init_storage(app):
    """Attach the configured blob store to the app"""
    app.extensions['blob_store'] = LocalBlobStore(
        root=app.config['UPLOAD_FOLDER'],
        url_prefix=app.config['UPLOAD_URL_PREFIX'],
        max_bytes=app.config['MAX_UPLOAD_BYTES'],
        allowed_extensions=app.config['ALLOWED_IMAGE_EXTENSIONS'],
    )
    return app.extensions['blob_store']
