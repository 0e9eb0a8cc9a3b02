import pytest

from filegate.core.errors import (
    BlockedExtension,
    SignatureMismatch,
    SizeExceeded,
    UnsupportedType,
)
from filegate.services.validation import FILE_SIGNATURES, validate

PNG_HEADER = b"\x89PNG\r\n\x1a\n"


def test_accepts_png_with_matching_signature():
    accepted = validate("image/png", "photo.png", PNG_HEADER + b"\x00" * 64)
    assert accepted.mime_type == "image/png"
    assert accepted.extension == ".png"
    assert accepted.signature_checked is True


@pytest.mark.parametrize(
    "preview",
    [
        b"",
        b"\x89PNG",
        b"GIF89a" + b"\x00" * 4096,
        b"\x88PNG\r\n\x1a\n" + b"\x00" * 10,
    ],
)
def test_png_with_wrong_header_is_rejected_regardless_of_length(preview):
    with pytest.raises(SignatureMismatch):
        validate("image/png", "photo.png", preview)


def test_blocked_extension_wins_over_allowed_mime():
    with pytest.raises(BlockedExtension):
        validate("application/pdf", "invoice.EXE", b"%PDF-1.7")


@pytest.mark.parametrize("mime_type", [None, "", "application/x-msdownload", "video/mp4"])
def test_unknown_mime_is_unsupported(mime_type):
    with pytest.raises(UnsupportedType):
        validate(mime_type, "file.bin", b"data")


def test_mime_check_runs_before_extension_check():
    with pytest.raises(UnsupportedType):
        validate("application/x-msdownload", "setup.exe", b"MZ")


def test_mime_parameters_and_case_are_ignored():
    accepted = validate("Text/Plain; charset=utf-8", "notes.txt", b"hello")
    assert accepted.mime_type == "text/plain"
    assert accepted.signature_checked is False


def test_types_without_signature_skip_content_check():
    docx = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    assert docx not in FILE_SIGNATURES
    accepted = validate(docx, "letter.docx", b"anything at all")
    assert accepted.signature_checked is False


def test_extension_absent_from_deny_list_still_needs_allowed_mime():
    with pytest.raises(UnsupportedType):
        validate("application/octet-stream", "data.bin", b"\x00")


def test_preview_over_budget_is_rejected():
    with pytest.raises(SizeExceeded):
        validate("text/plain", "big.txt", b"x" * 11, max_size=10)
