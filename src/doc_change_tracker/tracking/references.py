"""
Document reference parsing and validation.

Turns what a user types after ``watch`` (a bare token or a document URL)
into a validated token and a canonical document type.
"""

import logging
import re

from doc_change_tracker.models import DocType
from doc_change_tracker.models.exceptions import raise_invalid_token

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9]+$")

URL_PATTERN = re.compile(
    r"https?://(?:[\w-]+\.)*(?:feishu\.cn|larksuite\.com|larkoffice\.com)"
    r"/(?P<kind>docx|docs|doc|sheets|sheet|base|bitable|wiki|mindnotes|mindnote|slides|file)"
    r"/(?P<token>[A-Za-z0-9]+)"
)

DOC_TYPE_ALIASES: dict[str, DocType] = {
    "docx": DocType.DOCX,
    "document": DocType.DOCX,
    "documents": DocType.DOCX,
    "doc": DocType.DOC,
    "docs": DocType.DOC,
    "sheet": DocType.SHEET,
    "sheets": DocType.SHEET,
    "spreadsheet": DocType.SHEET,
    "bitable": DocType.BITABLE,
    "base": DocType.BITABLE,
    "table": DocType.BITABLE,
    "database": DocType.BITABLE,
    "wiki": DocType.WIKI,
    "wikis": DocType.WIKI,
    "mindnote": DocType.MINDNOTE,
    "mindnotes": DocType.MINDNOTE,
    "slides": DocType.SLIDES,
    "slide": DocType.SLIDES,
    "file": DocType.FILE,
    "files": DocType.FILE,
}

# Legacy token prefixes identify the type without a URL
TOKEN_PREFIX_TYPES: tuple[tuple[str, DocType], ...] = (
    ("doxcn", DocType.DOCX),
    ("docxcn", DocType.DOCX),
    ("doccn", DocType.DOC),
    ("shtcn", DocType.SHEET),
    ("bascn", DocType.BITABLE),
    ("bitcn", DocType.BITABLE),
    ("wikcn", DocType.WIKI),
)


def normalize_doc_type(doc_type: str | DocType | None) -> DocType:
    """
    Collapse provider-specific aliases to a canonical document type.

    Unknown or missing types default to docx, the most common online
    document type.

    Args:
        doc_type: Raw type string, enum value or None

    Returns:
        Canonical DocType
    """
    if isinstance(doc_type, DocType):
        return doc_type
    if not doc_type:
        return DocType.DOCX

    normalized = DOC_TYPE_ALIASES.get(doc_type.strip().lower())
    if normalized is None:
        logger.debug("Unknown document type %r, defaulting to docx", doc_type)
        return DocType.DOCX
    return normalized


def validate_token(token: str | None, min_length: int = 10) -> str:
    """
    Validate a document token.

    Args:
        token: Raw token
        min_length: Minimum accepted length

    Returns:
        The stripped token

    Raises:
        InvalidTokenError: If the token is empty or malformed
    """
    if token is None or not isinstance(token, str) or not token.strip():
        raise_invalid_token("Document token must not be empty", token=token)

    token = token.strip()
    if not TOKEN_PATTERN.match(token):
        raise_invalid_token(f"Document token contains invalid characters: {token}", token=token)
    if len(token) < min_length:
        raise_invalid_token(
            f"Document token is too short ({len(token)} < {min_length} characters): {token}", token=token
        )
    return token


def infer_doc_type_from_token(token: str) -> DocType | None:
    """Infer the document type from a legacy token prefix, if it has one."""
    lowered = token.lower()
    for prefix, doc_type in TOKEN_PREFIX_TYPES:
        if lowered.startswith(prefix):
            return doc_type
    return None


def parse_document_reference(reference: str) -> tuple[str, DocType | None]:
    """
    Extract a token and, when discoverable, a document type from user input.

    Supports document URLs (``https://example.feishu.cn/docx/<token>``) and
    bare tokens. The token is returned unvalidated.

    Args:
        reference: URL or token

    Returns:
        (token, doc_type or None)
    """
    reference = (reference or "").strip()

    match = URL_PATTERN.search(reference)
    if match:
        return match.group("token"), normalize_doc_type(match.group("kind"))

    return reference, infer_doc_type_from_token(reference)
