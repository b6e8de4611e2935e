import logging
import os
import secrets
import shutil
import time
from datetime import timedelta

from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

DOCUMENT_PREFIXES = {
    'admission_letter': 'admission-letter',
    'fee_invoice': 'fee-invoice',
}


class DocumentRejected(Exception):
    """Raised when an uploaded document fails the type or size checks."""


def file_extension(filename):
    if not filename or '.' not in filename:
        return ''
    return filename.rsplit('.', 1)[1].lower()


def measure(file):
    """Size of an uploaded FileStorage in bytes, without consuming it."""
    stream = file.stream
    position = stream.tell()
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(position)
    return size


class DocumentStorage:
    """Private document bucket backed by a folder outside ``static/``.

    Attachments go through two stages: the wizard stages a validated file
    while the student is still filling in the form, and the submission
    copies the staged file under its final generated path. The staged copy
    is discarded only once the request row is committed, so a failed
    submission can be retried with the same attachments. Staged files older
    than ``staging_max_age`` belong to abandoned wizards and are swept.
    """

    def __init__(self, documents_folder, staging_folder, max_size, allowed_extensions,
                 staging_max_age=None):
        self.documents_folder = documents_folder
        self.staging_folder = staging_folder
        self.max_size = max_size
        self.allowed_extensions = set(allowed_extensions)
        self.staging_max_age = staging_max_age
        os.makedirs(self.documents_folder, exist_ok=True)
        os.makedirs(self.staging_folder, exist_ok=True)

    @classmethod
    def from_config(cls, config):
        lifetime = config.get('PERMANENT_SESSION_LIFETIME')
        return cls(
            config['DOCUMENTS_FOLDER'],
            config['STAGING_FOLDER'],
            config['MAX_DOCUMENT_SIZE'],
            config['ALLOWED_EXTENSIONS'],
            staging_max_age=lifetime.total_seconds() if isinstance(lifetime, timedelta) else lifetime,
        )

    def validate(self, file):
        if not file or not file.filename:
            raise DocumentRejected('Please choose a file to upload')

        if file_extension(file.filename) not in self.allowed_extensions:
            raise DocumentRejected('Documents must be PDF, JPG or PNG files')

        size = measure(file)
        if size == 0:
            raise DocumentRejected('The selected file is empty')
        if size > self.max_size:
            limit_mb = self.max_size // (1024 * 1024)
            raise DocumentRejected(f'File is too large (max {limit_mb}MB)')
        return size

    def sweep_staging(self, now=None):
        """Remove staged files older than ``staging_max_age``; returns how many went."""
        if not self.staging_max_age:
            return 0
        cutoff = (now if now is not None else time.time()) - self.staging_max_age
        removed = 0
        for name in os.listdir(self.staging_folder):
            path = os.path.join(self.staging_folder, name)
            try:
                if os.path.isfile(path) and os.path.getmtime(path) < cutoff:
                    os.remove(path)
                    removed += 1
            except FileNotFoundError:
                continue
        if removed:
            logger.info('Swept %d abandoned staged attachment(s)', removed)
        return removed

    def stage(self, file, kind):
        size = self.validate(file)
        self.sweep_staging()
        token = f'{kind}-{secrets.token_hex(8)}.{file_extension(file.filename)}'
        file.save(os.path.join(self.staging_folder, token))
        logger.info('Staged %s (%d bytes) as %s', kind, size, token)
        return {
            'token': token,
            'filename': secure_filename(file.filename),
            'size': size,
        }

    def _staged_path(self, token):
        token = secure_filename(token)
        if not token:
            raise DocumentRejected('Invalid attachment reference')
        return os.path.join(self.staging_folder, token)

    def discard(self, token):
        path = self._staged_path(token)
        if os.path.exists(path):
            os.remove(path)

    def upload_staged(self, token, prefix):
        source = self._staged_path(token)
        if not os.path.exists(source):
            raise FileNotFoundError(f'Staged attachment {token} is missing')

        reference = f'{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(4)}.{file_extension(token)}'
        shutil.copyfile(source, os.path.join(self.documents_folder, reference))
        logger.info('✓ Uploaded document %s', reference)
        return reference

    def path_for(self, reference):
        safe = secure_filename(reference or '')
        if not safe or safe != reference:
            return None
        path = os.path.join(self.documents_folder, safe)
        return path if os.path.isfile(path) else None

    def delete(self, reference):
        path = self.path_for(reference)
        if path:
            os.remove(path)
