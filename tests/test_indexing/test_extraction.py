"""Tests for text extraction: real files in tmp_path, parsing libraries where cheap."""

import asyncio
import subprocess
from unittest.mock import patch

import pytest

from rag_library.errors import DependencyMissing, ExtractionFailed, UnsupportedFormat
from rag_library.indexing.extraction import (
    extract_text_content,
    file_extension,
    is_supported_extension,
    sanitize_content,
)
from rag_library.indexing.handlers import (
    SUPPORTED_EXTENSIONS,
    DocHandler,
    PdfHandler,
    PlainTextHandler,
    SpreadsheetHandler,
    get_handler_for_extension,
)


class TestDispatch:

    def test_file_extension(self):
        assert file_extension("/srv/Report.PDF") == "pdf"
        assert file_extension("/srv/README") == ""

    def test_supported_extensions(self):
        for ext in ("txt", "md", "csv", "xlsx", "html", "pdf", "docx", "doc", "py"):
            assert is_supported_extension(ext)
        assert is_supported_extension(".PDF")
        assert not is_supported_extension("exe")
        assert "pdf" in SUPPORTED_EXTENSIONS

    def test_handler_lookup(self):
        assert isinstance(get_handler_for_extension("md"), PlainTextHandler)
        assert isinstance(get_handler_for_extension("TSV"), SpreadsheetHandler)
        assert get_handler_for_extension("exe") is None

    def test_no_extension_is_unrecognized(self, tmp_path):
        path = tmp_path / "README"
        path.write_text("hello")
        with pytest.raises(UnsupportedFormat, match="Unrecognized file format"):
            asyncio.run(extract_text_content(str(path)))

    def test_unknown_extension_is_unsupported(self, tmp_path):
        path = tmp_path / "tool.exe"
        path.write_bytes(b"MZ")
        with pytest.raises(UnsupportedFormat, match="Unsupported file type: exe"):
            asyncio.run(extract_text_content(str(path)))


class TestHandlers:

    def test_plain_text(self, tmp_path):
        path = tmp_path / "notes.md"
        path.write_text("# Title\n\nBody text", encoding="utf-8")
        assert asyncio.run(extract_text_content(str(path))) == "# Title\n\nBody text"

    def test_csv_is_serialized_with_sheet_header(self, tmp_path):
        path = tmp_path / "fruit.csv"
        path.write_text("name,qty\napple,3\npear,\n", encoding="utf-8")

        text = asyncio.run(extract_text_content(str(path)))

        assert text.startswith("# Sheet: fruit\n")
        assert "name\tqty" in text
        assert "apple\t3" in text

    def test_html_drops_scripts(self, tmp_path):
        path = tmp_path / "page.html"
        path.write_text(
            "<html><head><script>var x = 1;</script></head>"
            "<body><h1>Refunds</h1><p>Within <a href='/x'>14 days</a>.</p></body></html>",
            encoding="utf-8",
        )

        text = asyncio.run(extract_text_content(str(path)))

        assert "Refunds" in text
        assert "14 days" in text
        assert "var x" not in text

    def test_docx_paragraphs_and_tables(self, tmp_path):
        docx = pytest.importorskip("docx")
        document = docx.Document()
        document.add_paragraph("Vacation policy")
        table = document.add_table(rows=1, cols=2)
        table.rows[0].cells[0].text = "days"
        table.rows[0].cells[1].text = "25"
        path = tmp_path / "policy.docx"
        document.save(str(path))

        text = asyncio.run(extract_text_content(str(path)))

        assert "Vacation policy" in text
        assert "days\t25" in text

    def test_doc_without_antiword(self, tmp_path):
        path = tmp_path / "legacy.doc"
        path.write_bytes(b"\xd0\xcf\x11\xe0")
        with patch("rag_library.indexing.handlers.shutil.which", return_value=None):
            with pytest.raises(DependencyMissing, match="antiword"):
                asyncio.run(DocHandler().extract(str(path)))

    def test_antiword_failure_carries_stderr(self, tmp_path):
        path = tmp_path / "legacy.doc"
        path.write_bytes(b"\xd0\xcf\x11\xe0")
        failure = subprocess.CalledProcessError(
            1, ["antiword"], stderr=b"legacy.doc is not a Word Document.\n"
        )
        with patch("rag_library.indexing.handlers.shutil.which", return_value="/usr/bin/antiword"), \
                patch("rag_library.indexing.handlers.subprocess.run", side_effect=failure):
            with pytest.raises(ExtractionFailed) as excinfo:
                asyncio.run(DocHandler().extract(str(path)))

        assert excinfo.value.file_name == "legacy.doc"
        assert excinfo.value.detail == "legacy.doc is not a Word Document."
        assert isinstance(excinfo.value.__cause__, subprocess.CalledProcessError)

    def test_antiword_failure_without_stderr(self, tmp_path):
        path = tmp_path / "legacy.doc"
        path.write_bytes(b"")
        failure = subprocess.CalledProcessError(2, ["antiword"], stderr=b"")
        with patch("rag_library.indexing.handlers.shutil.which", return_value="/usr/bin/antiword"), \
                patch("rag_library.indexing.handlers.subprocess.run", side_effect=failure):
            with pytest.raises(ExtractionFailed, match="exited with status 2"):
                asyncio.run(DocHandler().extract(str(path)))

    def test_corrupt_pdf(self, tmp_path):
        pytest.importorskip("pypdf")
        path = tmp_path / "scan.pdf"
        path.write_bytes(b"not a pdf at all")

        with pytest.raises(ExtractionFailed) as excinfo:
            asyncio.run(PdfHandler().extract(str(path)))

        assert excinfo.value.file_name == "scan.pdf"
        assert "scan.pdf" in str(excinfo.value)


class TestSanitize:

    def test_line_endings_and_tabs(self):
        assert sanitize_content("a\r\nb\rc\t\t d\f\ve") == "a\nb\nc  d e"

    def test_trims(self):
        assert sanitize_content("  \n text \n ") == "text"

    def test_blank(self):
        assert sanitize_content("\r\n\t ") == ""
