"""Upload validation and text extraction for flashcard source documents."""

import io
import zipfile
from dataclasses import dataclass
from typing import Optional

from docx import Document
from werkzeug.utils import secure_filename

from snapstudy.errors import ValidationError

ALLOWED_EXTENSIONS = {'txt', 'pdf', 'docx'}
MIME_TYPES = {
    'txt': 'text/plain',
    'pdf': 'application/pdf',
    'docx': 'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
}
MIN_EXTRACTED_CHARS = 50


@dataclass
class UploadedDocument:
    original_name: str
    extension: str
    mime_type: str
    data: bytes
    text: Optional[str] = None

    @property
    def size(self):
        return len(self.data)

    @property
    def needs_native_reading(self):
        # PDFs go to the model as raw bytes; everything else as extracted text.
        return self.text is None

    def source_file(self):
        return {'original_name': self.original_name, 'mime_type': self.mime_type, 'size': self.size}


def allowed_file(filename, allowed_extensions=ALLOWED_EXTENSIONS):
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in allowed_extensions


def file_has_pdf_signature(data):
    return data[:5] == b'%PDF-'


def file_has_docx_signature(data):
    if data[:4] != b'PK\x03\x04':
        return False
    try:
        with zipfile.ZipFile(io.BytesIO(data), 'r') as archive:
            members = set(archive.namelist())
    except zipfile.BadZipFile:
        return False
    return '[Content_Types].xml' in members and 'word/document.xml' in members


def extract_docx_text(data):
    document = Document(io.BytesIO(data))
    parts = [paragraph.text for paragraph in document.paragraphs if paragraph.text.strip()]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                parts.append(' | '.join(cells))
    return '\n'.join(parts).strip()


def extract_txt_text(data):
    return data.decode('utf-8-sig', errors='replace').strip()


def _invalid(message):
    return ValidationError(message, [{'field': 'file', 'message': message}])


def load_upload(file_storage, max_bytes):
    """Read a werkzeug FileStorage into an UploadedDocument, rejecting bad input."""
    if file_storage is None or not (file_storage.filename or '').strip():
        raise _invalid('No file uploaded')
    original_name = secure_filename(file_storage.filename) or 'upload'
    if not allowed_file(original_name):
        raise _invalid('Invalid file type. Only PDF, DOCX, and TXT files are allowed')
    extension = original_name.rsplit('.', 1)[1].lower()

    data = file_storage.read(max_bytes + 1)
    if not data:
        raise _invalid('Uploaded file is empty')
    if len(data) > max_bytes:
        raise _invalid(f'File is too large. Maximum size is {max(1, max_bytes // (1024 * 1024))}MB')

    text = None
    if extension == 'pdf':
        if not file_has_pdf_signature(data):
            raise _invalid('Uploaded file is not a valid PDF')
    elif extension == 'docx':
        if not file_has_docx_signature(data):
            raise _invalid('Uploaded file is not a valid Word document')
        try:
            text = extract_docx_text(data)
        except (KeyError, ValueError, zipfile.BadZipFile):
            raise _invalid('Could not read the Word document')
    else:
        text = extract_txt_text(data)

    if text is not None and len(text) < MIN_EXTRACTED_CHARS:
        raise _invalid('Could not extract enough text from the file to generate flashcards')
    return UploadedDocument(
        original_name=original_name,
        extension=extension,
        mime_type=MIME_TYPES[extension],
        data=data,
        text=text,
    )
