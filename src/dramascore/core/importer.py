"""Import script documents from .txt, .md, .docx or text-based .pdf files."""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Union

from docx import Document
from pypdf import PdfReader

from .models import RequestValidationError

logger = logging.getLogger(__name__)

MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024
MAX_TEXT_LENGTH = 2_000_000
PDF_MIN_TEXT_CHARS = 20

NEWLINE_RE = re.compile(r'\r\n?')


class FileType(Enum):
    """Supported document types."""
    TXT = "txt"
    MARKDOWN = "markdown"
    DOCX = "docx"
    DOC = "doc"
    PDF = "pdf"
    UNKNOWN = "unknown"


EXTENSION_TO_TYPE = {
    'doc': FileType.DOC,
    'docx': FileType.DOCX,
    'markdown': FileType.MARKDOWN,
    'md': FileType.MARKDOWN,
    'pdf': FileType.PDF,
    'txt': FileType.TXT,
}


class FileImportError(RequestValidationError):
    """A document could not be turned into script text.

    `reason` names the specific failure; `code` stays ERR_BAD_REQUEST.
    """

    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason


@dataclass
class ImportedScript:
    """Plain script text extracted from a document."""
    file_name: str
    file_type: FileType
    text: str


def detect_file_type(path: Union[str, Path]) -> FileType:
    extension = Path(path).suffix.lower().lstrip('.')
    return EXTENSION_TO_TYPE.get(extension, FileType.UNKNOWN)


def normalize_extracted_text(raw: str) -> str:
    """Unify line endings, drop NUL characters and trim."""
    return NEWLINE_RE.sub('\n', raw).replace('\0', '').strip()


def extract_docx_text(path: Path) -> str:
    """Paragraph text of a .docx file, one paragraph per line."""
    doc = Document(str(path))
    return '\n'.join(para.text for para in doc.paragraphs)


def extract_pdf_text(path: Path) -> str:
    """Text layer of every page of a PDF, one page per block."""
    reader = PdfReader(str(path))
    pages = []
    for page in reader.pages:
        text = page.extract_text() or ''
        if text.strip():
            pages.append(text)
    return '\n'.join(pages)


def _extract(path: Path, file_type: FileType) -> str:
    if file_type in (FileType.TXT, FileType.MARKDOWN):
        return path.read_text(encoding='utf-8', errors='replace')

    if file_type == FileType.DOCX:
        try:
            return extract_docx_text(path)
        except Exception as e:
            logger.warning("Failed to parse %s as docx: %s", path, e)
            raise FileImportError('ERR_DOCX_PARSE_FAILED', 'Failed to parse .docx content.') from e

    try:
        text = extract_pdf_text(path)
    except Exception as e:
        logger.warning("Failed to parse %s as pdf: %s", path, e)
        raise FileImportError('ERR_PDF_PARSE_FAILED', 'Failed to parse PDF content.') from e
    if len(normalize_extracted_text(text)) < PDF_MIN_TEXT_CHARS:
        raise FileImportError('ERR_PDF_NO_TEXT_LAYER',
                              'This PDF appears to be image/scanned. Text-based PDF is required.')
    return text


def import_script(path: Union[str, Path]) -> ImportedScript:
    """Read a document and return its normalized script text.

    Raises:
        FileImportError: unsupported type, oversized file, unreadable
            content, or no usable text
    """
    path = Path(path)
    file_type = detect_file_type(path)

    if file_type == FileType.DOC:
        raise FileImportError('ERR_UNSUPPORTED_TYPE',
                              'Legacy .doc is not supported. Please convert it to .docx.')
    if file_type == FileType.UNKNOWN:
        raise FileImportError('ERR_UNSUPPORTED_TYPE',
                              'Unsupported file type. Use txt, md, markdown, docx, or text-based pdf.')
    if not path.is_file():
        raise FileImportError('ERR_FILE_READ_FAILED', f'File not found: {path}')
    if path.stat().st_size > MAX_FILE_SIZE_BYTES:
        raise FileImportError('ERR_FILE_TOO_LARGE', 'File is too large. Maximum supported size is 10MB.')

    text = normalize_extracted_text(_extract(path, file_type))
    if not text:
        raise FileImportError('ERR_EMPTY_TEXT', 'No readable text found in file.')
    if len(text) > MAX_TEXT_LENGTH:
        raise FileImportError('ERR_TEXT_TOO_LONG', 'Extracted text is too long for analysis input.')

    logger.info("Imported %s (%s): %d chars", path.name, file_type.value, len(text))
    return ImportedScript(file_name=path.name, file_type=file_type, text=text)
