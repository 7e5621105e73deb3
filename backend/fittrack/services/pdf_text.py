"""Text extraction from uploaded PDF reports using pdfplumber."""

import io
import logging
import re

import pdfplumber

from fittrack.config import settings
from fittrack.services.errors import InputInvalidError, UnreadableDocumentError

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPES = frozenset({"application/pdf", "application/x-pdf"})

_WHITESPACE_RE = re.compile(r"\s+")


def clean_text(text: str) -> str:
    """Collapse all whitespace runs to single spaces and trim."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def check_upload(content_type: str | None, size: int, max_bytes: int | None = None) -> None:
    """Reject non-PDF or oversized uploads before any extraction work.

    Raises:
        InputInvalidError: If the content type is not PDF or the file is
            empty or larger than ``max_bytes``.
    """
    max_bytes = settings.max_upload_bytes if max_bytes is None else max_bytes
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    if media_type not in PDF_CONTENT_TYPES:
        raise InputInvalidError("Only PDF files are allowed.")
    if size == 0:
        raise InputInvalidError("Uploaded file is empty.")
    if size > max_bytes:
        raise InputInvalidError(
            f"File too large. Maximum size is {max_bytes // (1024 * 1024)} MB."
        )


def extract_pdf_text(pdf_bytes: bytes) -> str:
    """Extract whitespace-normalized text from every page of a PDF.

    Raises:
        UnreadableDocumentError: If pdfplumber cannot open or parse the file.
    """
    try:
        with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
    except Exception as e:
        logger.warning("PDF parsing failed: %s", e)
        raise UnreadableDocumentError() from e

    text = clean_text(" ".join(pages))
    logger.info("Extracted %d characters from %d page(s)", len(text), len(pages))
    return text


def require_readable(text: str, min_chars: int | None = None) -> str:
    """Return cleaned ``text`` if it is long enough to be a real report.

    Raises:
        UnreadableDocumentError: If fewer than ``min_chars`` characters remain.
    """
    min_chars = settings.min_report_chars if min_chars is None else min_chars
    text = clean_text(text)
    if len(text) < min_chars:
        logger.info("Report text too short (%d < %d characters)", len(text), min_chars)
        raise UnreadableDocumentError()
    return text
