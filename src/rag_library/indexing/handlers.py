"""
Per-format text handlers.

One handler per family of file formats. Each parsing library is imported
inside the handler at extraction time, so a server that never sees a
spreadsheet never needs pandas installed, and a missing library shows
up as DependencyMissing with the pip command to fix it instead of an
ImportError at startup.

    Handler               Extensions                          Library
    PlainTextHandler      txt md json py ... (source + text)  (stdlib)
    SpreadsheetHandler    csv tsv xls xlsx ods                pandas (+ openpyxl / odfpy / xlrd)
    HtmlHandler           html htm mhtml                      beautifulsoup4
    PdfHandler            pdf                                 pypdf
    DocxHandler           docx                                python-docx
    DocHandler            doc                                 antiword (binary)

Parsing is blocking, so every handler runs its work in a thread.
"""

import asyncio
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from rag_library.base.indexer import BaseTextHandler
from rag_library.errors import DependencyMissing, ExtractionFailed

logger = logging.getLogger(__name__)


def _missing(package: str, pip_name: Optional[str] = None) -> DependencyMissing:
    return DependencyMissing(
        f"Missing {package} dependency. Install it with: pip install {pip_name or package}"
    )


class PlainTextHandler(BaseTextHandler):
    """Passthrough for anything that is already text."""

    id = "plain-text"
    supported_extensions = frozenset({
        "txt", "md", "mdx", "markdown", "json", "yaml", "yml", "ini", "toml",
        "js", "jsx", "ts", "tsx", "c", "cpp", "cc", "h", "hpp", "java", "py",
        "rb", "php", "go", "rs", "swift", "kt", "kts", "scala", "cs", "sql",
        "sh", "bash", "zsh", "env", "log",
    })

    async def extract(self, file_path: str) -> str:
        return await asyncio.to_thread(
            Path(file_path).read_text, encoding="utf-8", errors="replace"
        )


class SpreadsheetHandler(BaseTextHandler):
    """
    Serializes every sheet as tab-separated rows under a header line:

        # Sheet: Q1
        region<TAB>revenue
        EMEA<TAB>120

    Sheets are joined by a blank line. CSV/TSV files are a single sheet
    named after the file.
    """

    id = "spreadsheet"
    supported_extensions = frozenset({"csv", "tsv", "xls", "xlsx", "ods"})

    async def extract(self, file_path: str) -> str:
        return await asyncio.to_thread(self._extract_sync, file_path)

    def _extract_sync(self, file_path: str) -> str:
        try:
            import pandas as pd
        except ImportError:
            raise _missing("pandas", "pandas openpyxl")

        path = Path(file_path)
        ext = path.suffix.lower().lstrip(".")

        try:
            if ext in ("csv", "tsv"):
                frame = pd.read_csv(
                    path,
                    sep="\t" if ext == "tsv" else ",",
                    header=None,
                    dtype=str,
                    keep_default_na=False,
                )
                sheets = {path.stem: frame}
            else:
                engine = "odf" if ext == "ods" else None
                sheets = pd.read_excel(
                    path,
                    sheet_name=None,
                    header=None,
                    dtype=str,
                    engine=engine,
                )
        except ImportError as exc:
            # pandas raises ImportError for a missing engine (openpyxl, odfpy, xlrd)
            raise DependencyMissing(
                f"Reading .{ext} files needs an extra engine: {exc}"
            ) from exc

        segments = []
        for sheet_name, frame in sheets.items():
            body = frame.fillna("").to_csv(sep="\t", index=False, header=False)
            segments.append(f"# Sheet: {sheet_name}\n{body.rstrip()}")

        return "\n\n".join(segments)


class HtmlHandler(BaseTextHandler):
    """HTML to plain text. Link targets are dropped, link text is kept."""

    id = "html"
    supported_extensions = frozenset({"html", "htm", "mhtml"})

    async def extract(self, file_path: str) -> str:
        return await asyncio.to_thread(self._extract_sync, file_path)

    def _extract_sync(self, file_path: str) -> str:
        try:
            from bs4 import BeautifulSoup
        except ImportError:
            raise _missing("beautifulsoup4")

        markup = Path(file_path).read_text(encoding="utf-8", errors="replace")
        soup = BeautifulSoup(markup, "html.parser")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        return soup.get_text(separator="\n")


class PdfHandler(BaseTextHandler):
    id = "pdf"
    supported_extensions = frozenset({"pdf"})

    async def extract(self, file_path: str) -> str:
        return await asyncio.to_thread(self._extract_sync, file_path)

    def _extract_sync(self, file_path: str) -> str:
        try:
            from pypdf import PdfReader
            from pypdf.errors import PyPdfError
        except ImportError:
            raise _missing("pypdf")

        try:
            reader = PdfReader(file_path)
            return "\n".join(page.extract_text() or "" for page in reader.pages)
        except PyPdfError as exc:
            raise ExtractionFailed(Path(file_path).name, str(exc) or type(exc).__name__) from exc


class DocxHandler(BaseTextHandler):
    id = "docx"
    supported_extensions = frozenset({"docx"})

    async def extract(self, file_path: str) -> str:
        return await asyncio.to_thread(self._extract_sync, file_path)

    def _extract_sync(self, file_path: str) -> str:
        try:
            import docx
        except ImportError:
            raise _missing("python-docx")

        document = docx.Document(file_path)
        lines = [paragraph.text for paragraph in document.paragraphs]
        for table in document.tables:
            for row in table.rows:
                lines.append("\t".join(cell.text for cell in row.cells))
        return "\n".join(lines)


class DocHandler(BaseTextHandler):
    """
    Legacy Word 97-2003 files.

    No maintained pure-Python parser exists for the binary .doc format, so
    this shells out to antiword, which must be on PATH.
    """

    id = "doc"
    supported_extensions = frozenset({"doc"})

    async def extract(self, file_path: str) -> str:
        return await asyncio.to_thread(self._extract_sync, file_path)

    def _extract_sync(self, file_path: str) -> str:
        binary = shutil.which("antiword")
        if binary is None:
            raise DependencyMissing(
                "Missing antiword binary for legacy .doc files. "
                "Install it with your package manager (e.g. apt-get install antiword)."
            )

        try:
            completed = subprocess.run(
                [binary, "-w", "0", file_path],
                capture_output=True,
                check=True,
            )
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or b"").decode("utf-8", errors="replace").strip()
            raise ExtractionFailed(
                Path(file_path).name,
                stderr or f"antiword exited with status {exc.returncode}",
            ) from exc
        return completed.stdout.decode("utf-8", errors="replace")


HANDLERS: tuple[BaseTextHandler, ...] = (
    PlainTextHandler(),
    SpreadsheetHandler(),
    HtmlHandler(),
    PdfHandler(),
    DocxHandler(),
    DocHandler(),
)


def get_handler_for_extension(extension: str) -> Optional[BaseTextHandler]:
    """Return the first handler that accepts the extension (no dot), or None."""
    extension = extension.lower().lstrip(".")
    for handler in HANDLERS:
        if handler.matches(extension):
            return handler
    return None


def get_registered_handlers() -> list[BaseTextHandler]:
    return list(HANDLERS)


SUPPORTED_EXTENSIONS = frozenset().union(*(h.supported_extensions for h in HANDLERS))
