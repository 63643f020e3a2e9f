"""
Text extraction for uploaded assignment files.

Sniffs the upload format from its MIME type, extension and magic bytes and
returns normalised plain text plus a small metadata dict for the client
preview. PDF pages are read with PyMuPDF, DOCX paragraphs and tables with
python-docx; RTF control words are stripped with regular expressions; any
other payload is decoded as UTF-8.
"""
from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any, Dict, List, Optional

import fitz  # PyMuPDF
from docx import Document as DocxDocument

from alloqly.config import settings
from alloqly.utils.helpers import normalize_whitespace, word_count

logger = logging.getLogger(__name__)


PLAIN_TEXT_TYPES = frozenset({
    "text/plain",
    "text/markdown",
    "text/x-markdown",
    "text/csv",
    "text/html",
    "text/x-python",
    "text/richtext",
    "application/json",
})
PLAIN_TEXT_EXTENSIONS = frozenset({"txt", "md"})

PDF_TYPE = "application/pdf"
DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
RTF_TYPES = frozenset({"application/rtf", "text/rtf"})

NO_TEXT_MESSAGE = (
    "We couldn't extract readable text. "
    "Try uploading a PDF, DOCX, RTF, or plain text file."
)

# RTF stripping, applied in order
_RTF_HEX_RE = re.compile(r"\\'([0-9a-fA-F]{2})")
_RTF_PAR_RE = re.compile(r"\\pard|\\par")
_RTF_CONTROL_RE = re.compile(r"\\[a-z]+\d*", re.IGNORECASE)
_RTF_BRACES_RE = re.compile(r"[{}]")


class ExtractionError(Exception):
    """Raised when an upload cannot be turned into text; carries an HTTP status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


@dataclass
class ExtractedText:
    """Normalised text and preview metadata for one upload."""

    text: str
    meta: Dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------

class TextExtractor:
    """Turns uploaded bytes into a single normalised text string."""

    def __init__(self, max_size: Optional[int] = None, snippet_chars: Optional[int] = None) -> None:
        self.max_size = max_size if max_size is not None else settings.MAX_UPLOAD_SIZE
        self.snippet_chars = snippet_chars if snippet_chars is not None else settings.SNIPPET_CHARS

    async def extract(
        self,
        data: bytes,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> ExtractedText:
        """
        Extract normalised text from an uploaded file.

        Args:
            data:         Raw file bytes.
            filename:     Client-side file name (used for the extension).
            content_type: MIME type reported by the client, may be empty.

        Returns:
            ExtractedText with ``text`` and ``meta`` (fileName, mimeType,
            wordCount, snippet, format).

        Raises:
            ExtractionError: empty or oversized upload (400), unreadable
                             document or no text found (422).
        """
        if not data:
            raise ExtractionError(400, "Uploaded file is empty.")
        if len(data) > self.max_size:
            limit_mb = self.max_size // (1024 * 1024)
            raise ExtractionError(400, f"File is too large. Try a file under {limit_mb}MB.")

        file_name = filename or "uploaded-file"
        mime_type = (content_type or "").split(";")[0].strip().lower()
        fmt = detect_format(data, file_name, mime_type)

        if fmt == "pdf":
            raw = self._extract_pdf(data)
        elif fmt == "docx":
            raw = self._extract_docx(data)
        elif fmt == "rtf":
            raw = strip_rtf(_decode(data))
        else:
            raw = _decode(data)

        if not raw.strip():
            raise ExtractionError(422, NO_TEXT_MESSAGE)

        text = normalize_whitespace(raw)
        meta = {
            "fileName": file_name,
            "mimeType": mime_type or "unknown",
            "wordCount": word_count(text),
            "snippet": text[:self.snippet_chars],
            "format": fmt,
        }
        logger.info(
            "Extracted %d words from %r (%s, %d bytes)",
            meta["wordCount"],
            file_name,
            fmt,
            len(data),
        )
        return ExtractedText(text=text, meta=meta)

    # ------------------------------------------------------------------
    # PDF
    # ------------------------------------------------------------------

    def _extract_pdf(self, data: bytes) -> str:
        """Concatenate the text layer of every page."""
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise ExtractionError(422, f"Cannot open PDF file: {exc}") from exc

        try:
            if doc.needs_pass:
                raise ExtractionError(
                    422, "PDF is password-protected. Please provide an unlocked copy."
                )
            pages: List[str] = [page.get_text("text") for page in doc]
        finally:
            doc.close()

        return "\n\n".join(pages)

    # ------------------------------------------------------------------
    # DOCX
    # ------------------------------------------------------------------

    def _extract_docx(self, data: bytes) -> str:
        """Paragraph text followed by pipe-joined table rows."""
        try:
            doc = DocxDocument(io.BytesIO(data))
        except Exception as exc:
            raise ExtractionError(422, f"Cannot open DOCX file: {exc}") from exc

        parts: List[str] = [p.text for p in doc.paragraphs if p.text.strip()]

        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells]
                non_empty = [c for c in cells if c]
                if non_empty:
                    parts.append(" | ".join(non_empty))

        return "\n".join(parts)


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------

async def extract_text(
    data: bytes,
    filename: Optional[str] = None,
    content_type: Optional[str] = None,
) -> ExtractedText:
    """Extract with the configured upload limit and snippet length."""
    return await TextExtractor().extract(data, filename, content_type)


def detect_format(data: bytes, filename: str, mime_type: str) -> str:
    """
    Decide how an upload should be read.

    Returns one of ``"text"``, ``"pdf"``, ``"docx"``, ``"rtf"`` or
    ``"unknown"`` (decoded as UTF-8 like plain text).
    """
    ext = _extension(filename)

    if mime_type in PLAIN_TEXT_TYPES or ext in PLAIN_TEXT_EXTENSIONS:
        return "text"
    if mime_type == PDF_TYPE or ext == "pdf" or data.startswith(b"%PDF-"):
        return "pdf"
    if mime_type == DOCX_TYPE or ext == "docx":
        return "docx"
    if mime_type in RTF_TYPES or ext == "rtf":
        return "rtf"
    return "unknown"


def strip_rtf(text: str) -> str:
    """
    Reduce RTF markup to its readable text.

    ``\\'hh`` escapes become the byte they encode, paragraph marks become
    newlines, every other control word and all group braces are dropped.
    """
    text = _RTF_HEX_RE.sub(lambda m: chr(int(m.group(1), 16)), text)
    text = _RTF_PAR_RE.sub("\n", text)
    text = _RTF_CONTROL_RE.sub("", text)
    text = _RTF_BRACES_RE.sub("", text)
    return normalize_whitespace(text)


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def _extension(filename: str) -> str:
    return PurePath(filename).suffix.lower().lstrip(".")
