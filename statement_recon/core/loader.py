"""
Statement text acquisition: plain text, PDF (pdfplumber) and ZIP archives.
"""
import io
import re
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Union
import logging

import pdfplumber

from .lines import split_text

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = ('.pdf', '.txt')

LIGATURES = {
    'ﬁ': 'fi',
    'ﬂ': 'fl',
    'ﬀ': 'ff',
    'ﬃ': 'ffi',
    'ﬄ': 'ffl',
    'ﬆ': 'st',
    'ﬅ': 'st'
}


class PDFLoader:
    """Handles PDF loading and text line extraction."""

    def __init__(self, source: Union[Path, bytes]):
        self.source = source
        self._pdf = None
        self._lines: List[str] = []

    def load(self) -> List[str]:
        """Load the PDF and extract its text lines, page by page."""
        if self._lines:
            return self._lines

        try:
            opened = io.BytesIO(self.source) if isinstance(self.source, bytes) else self.source
            self._pdf = pdfplumber.open(opened)
            logger.info(f"Loaded PDF with {len(self._pdf.pages)} pages")

            for i, page in enumerate(self._pdf.pages, 1):
                text = page.extract_text() or ""
                page_lines = [self._normalize_text(line) for line in split_text(text)]
                self._lines.extend(page_lines)
                logger.debug(f"Page {i}: {len(page_lines)} lines extracted")

            return self._lines

        except Exception as e:
            logger.error(f"Error loading PDF: {e}")
            raise

    def _normalize_text(self, text: str) -> str:
        """Replace ligatures and collapse runs of spaces."""
        for ligature, replacement in LIGATURES.items():
            text = text.replace(ligature, replacement)

        return re.sub(r'[ \t]+', ' ', text).rstrip()

    def close(self):
        """Close the PDF file."""
        if self._pdf:
            self._pdf.close()
            self._pdf = None


def read_pdf_lines(source: Union[Path, bytes]) -> List[str]:
    loader = PDFLoader(source)
    try:
        return loader.load()
    finally:
        loader.close()


def read_text_lines(data: Union[Path, bytes]) -> List[str]:
    raw = data.read_bytes() if isinstance(data, Path) else data
    return split_text(raw.decode('utf-8-sig'))


@dataclass
class SourceDocument:
    """A statement document whose lines are read on demand."""
    source_type: str
    origin_path: str
    reader: Callable[[], List[str]]
    entry_name: Optional[str] = None

    def read_lines(self) -> List[str]:
        return self.reader()

    @property
    def label(self) -> str:
        if self.entry_name:
            return f"{self.origin_path} :: {self.entry_name}"
        return self.origin_path


def _reader_for(name: str, payload: Union[Path, bytes]) -> Callable[[], List[str]]:
    if name.lower().endswith('.pdf'):
        return lambda: read_pdf_lines(payload)
    return lambda: read_text_lines(payload)


def iter_zip_documents(zip_path: Path) -> Iterator[SourceDocument]:
    with zipfile.ZipFile(zip_path) as archive:
        for info in archive.infolist():
            if info.is_dir() or not info.filename.lower().endswith(SUPPORTED_SUFFIXES):
                continue
            payload = archive.read(info)
            yield SourceDocument(
                source_type="zip",
                origin_path=str(zip_path),
                entry_name=info.filename,
                reader=_reader_for(info.filename, payload),
            )


def iter_documents(path: Path) -> Iterator[SourceDocument]:
    """
    Yield the statement documents held by one file.

    Args:
        path: A .pdf, .txt or .zip file

    Returns:
        Iterator of SourceDocument; unsupported files yield nothing
    """
    suffix = path.suffix.lower()
    if suffix == '.zip':
        yield from iter_zip_documents(path)
    elif suffix == '.pdf':
        yield SourceDocument("pdf", str(path), _reader_for(path.name, path))
    elif suffix == '.txt':
        yield SourceDocument("text", str(path), _reader_for(path.name, path))
    else:
        logger.debug(f"Skipping unsupported file: {path}")
