"""Unit tests for document reference parsing."""

import pytest
from doc_change_tracker.models import DocType, InvalidTokenError
from doc_change_tracker.tracking.references import (
    infer_doc_type_from_token,
    normalize_doc_type,
    parse_document_reference,
    validate_token,
)


class TestNormalizeDocType:
    """Test cases for doc type normalization."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("document", DocType.DOCX),
            ("DOCX", DocType.DOCX),
            ("docs", DocType.DOC),
            ("base", DocType.BITABLE),
            ("sheets", DocType.SHEET),
            (" wiki ", DocType.WIKI),
            (DocType.SLIDES, DocType.SLIDES),
        ],
    )
    def test_aliases_collapse(self, raw, expected):
        """Test that provider aliases collapse to canonical types."""
        assert normalize_doc_type(raw) == expected

    def test_unknown_and_missing_default_to_docx(self):
        """Test the docx fallback."""
        assert normalize_doc_type("hologram") == DocType.DOCX
        assert normalize_doc_type(None) == DocType.DOCX
        assert normalize_doc_type("") == DocType.DOCX


class TestValidateToken:
    """Test cases for token validation."""

    def test_valid_token_is_stripped(self):
        """Test that surrounding whitespace is removed."""
        assert validate_token("  L7v9abcdef123  ") == "L7v9abcdef123"

    @pytest.mark.parametrize("token", ["", "   ", None])
    def test_empty_token_rejected(self, token):
        """Test empty tokens."""
        with pytest.raises(InvalidTokenError) as exc_info:
            validate_token(token)

        assert exc_info.value.error_code == "INVALID_TOKEN"

    def test_malformed_token_rejected(self):
        """Test tokens with invalid characters."""
        with pytest.raises(InvalidTokenError) as exc_info:
            validate_token("abc/def-ghi!jkl")

        assert "invalid characters" in exc_info.value.message

    def test_short_token_rejected(self):
        """Test the minimum length."""
        with pytest.raises(InvalidTokenError):
            validate_token("abc123")

        assert validate_token("abc123", min_length=4) == "abc123"


class TestParseDocumentReference:
    """Test cases for URL and token parsing."""

    def test_docx_url(self):
        """Test extracting token and type from a document URL."""
        token, doc_type = parse_document_reference("https://acme.feishu.cn/docx/L7v9abcdef123?from=chat")

        assert token == "L7v9abcdef123"
        assert doc_type == DocType.DOCX

    def test_base_url_maps_to_bitable(self):
        """Test URL kind aliases."""
        token, doc_type = parse_document_reference("https://acme.larksuite.com/base/Bas1234567890")

        assert token == "Bas1234567890"
        assert doc_type == DocType.BITABLE

    def test_bare_token_with_legacy_prefix(self):
        """Test inferring the type from a legacy token prefix."""
        assert parse_document_reference("shtcnAbCdEf123456") == ("shtcnAbCdEf123456", DocType.SHEET)
        assert infer_doc_type_from_token("wikcnAbCdEf123456") == DocType.WIKI

    def test_bare_token_without_prefix(self):
        """Test that plain tokens carry no inferred type."""
        assert parse_document_reference(" L7v9abcdef123 ") == ("L7v9abcdef123", None)
