import io

import pytest
from docx import Document as DocxDocument
from PyPDF2 import PdfWriter

from askdocs.ingest import (
    DocumentExtractor,
    DocumentFormat,
    DocumentTooLargeError,
    ExtractionError,
    UnsupportedDocumentError,
    detect_format,
    detect_language,
    normalize_text,
)


@pytest.mark.parametrize(
    ("file_name", "mime_type", "expected"),
    [
        ("notes.txt", None, DocumentFormat.TXT),
        ("REPORT.PDF", None, DocumentFormat.PDF),
        ("letter.docx", "application/octet-stream", DocumentFormat.DOCX),
        ("upload", "application/pdf", DocumentFormat.PDF),
        ("upload", "text/plain; charset=utf-8", DocumentFormat.TXT),
    ],
)
def test_format_detection(file_name, mime_type, expected):
    assert detect_format(file_name, mime_type) is expected


def test_format_detection_rejects_unknown_types():
    with pytest.raises(UnsupportedDocumentError, match="Unsupported file type: xlsx"):
        detect_format("sheet.xlsx")


def test_normalize_text_collapses_whitespace():
    raw = "Line one\t\twith  tabs \r\nLine two\x00\n\n\n\nLast   line  "

    assert normalize_text(raw) == "Line one with tabs\nLine two\n\nLast line"


def test_format_detection_sniffs_content_when_name_is_inconclusive():
    assert detect_format("scan", "application/octet-stream", b"%PDF-1.7") is DocumentFormat.PDF
    assert detect_format("letter", None, b"PK\x03\x04\x14\x00") is DocumentFormat.DOCX


def test_format_detection_prefers_supported_suffix_over_content():
    assert detect_format("notes.txt", "application/pdf", b"%PDF-1.7") is DocumentFormat.TXT


def test_normalize_text_drops_invisible_characters():
    raw = "\ufeffPage one\u200b text\x0cPage two  \n   indented"

    assert normalize_text(raw) == "Page one text\nPage two\nindented"


def test_detect_language_needs_enough_letters():
    assert detect_language("") is None
    assert detect_language("12 34 56 ok") is None
    assert detect_language(
        "Der Vertrag tritt mit der Unterzeichnung durch beide Parteien in Kraft "
        "und gilt auf unbestimmte Zeit."
    ) == "de"


def test_extract_plain_text_strips_bom_and_detects_language():
    text = (
        "The quarterly report describes revenue growth across every region. "
        "Sales teams exceeded their targets and customer satisfaction improved."
    )
    extractor = DocumentExtractor()

    document = extractor.extract(b"\xef\xbb\xbf" + text.encode("utf-8"), "report.txt")

    assert document.text == text
    assert document.format is DocumentFormat.TXT
    assert document.language == "en"


def test_extract_docx_paragraphs():
    buffer = io.BytesIO()
    docx = DocxDocument()
    docx.add_paragraph("First paragraph.")
    docx.add_paragraph("")
    docx.add_paragraph("Second paragraph.")
    docx.save(buffer)

    document = DocumentExtractor().extract(buffer.getvalue(), "memo.docx")

    assert document.format is DocumentFormat.DOCX
    assert document.text == "First paragraph.\n\nSecond paragraph."


def test_extract_blank_pdf_yields_empty_text():
    buffer = io.BytesIO()
    writer = PdfWriter()
    writer.add_blank_page(width=200, height=200)
    writer.write(buffer)

    document = DocumentExtractor().extract(buffer.getvalue(), "blank.pdf")

    assert document.format is DocumentFormat.PDF
    assert document.text == ""
    assert document.language is None


@pytest.mark.parametrize("file_name", ["broken.pdf", "broken.docx"])
def test_corrupt_documents_raise_extraction_error(file_name):
    with pytest.raises(ExtractionError):
        DocumentExtractor().extract(b"definitely not a real document", file_name)


def test_size_limit_is_enforced():
    extractor = DocumentExtractor(max_bytes=5 * 1024 * 1024)

    with pytest.raises(DocumentTooLargeError, match=r"File too large \(max 5MB\)"):
        extractor.extract(b"a" * (5 * 1024 * 1024 + 1), "big.txt")
