"""Document text extraction and chunking functionality."""

import io
import zipfile
from bisect import bisect_right
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from xml.etree.ElementTree import ParseError

import docx
import openpyxl
import pptx
import pypdf
from docx.opc.exceptions import PackageNotFoundError as DocxPackageNotFoundError
from lxml import etree
from openpyxl.utils.exceptions import InvalidFileException
from pptx.exc import PackageNotFoundError as PptxPackageNotFoundError
from pypdf.errors import PyPdfError

from .config import config
from .errors import CorruptDocumentError, UnsupportedFormatError
from .models import Chunk, SourceFormat

logger = config.get_logger(__name__)

PAGE_SEPARATOR = "\n\n"

# Sentence and paragraph boundaries, strongest first.
_BOUNDARIES = ("\n\n", "\n", ". ", "! ", "? ")

# Broken zip containers and malformed package XML.
_PACKAGE_ERRORS = (zipfile.BadZipFile, KeyError, etree.XMLSyntaxError, ParseError)


@dataclass(frozen=True)
class ExtractedText:
    """Plain text pulled from a document.

    ``page_starts[i]`` is the character offset where page (or slide) ``i + 1``
    begins; it is empty for formats without pages.
    """

    text: str
    page_starts: tuple[int, ...] = ()


def _join_pages(pages: Sequence[str]) -> ExtractedText:
    starts: list[int] = []
    parts: list[str] = []
    offset = 0
    for page_text in pages:
        if parts:
            parts.append(PAGE_SEPARATOR)
            offset += len(PAGE_SEPARATOR)
        starts.append(offset)
        parts.append(page_text)
        offset += len(page_text)
    return ExtractedText(text="".join(parts), page_starts=tuple(starts))


class DocumentLoader:
    """Handles extraction of plain text from uploaded documents."""

    @staticmethod
    def load_txt(raw_bytes: bytes) -> ExtractedText:
        """Decode a UTF-8 text file (a leading BOM is tolerated).

        Returns:
            The decoded text.

        Raises:
            CorruptDocumentError: If the bytes are not valid UTF-8.
        """
        try:
            text = raw_bytes.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            msg = f"Text file is not valid UTF-8: {exc}"
            raise CorruptDocumentError(msg) from exc
        return ExtractedText(text=text)

    @staticmethod
    def load_pdf(raw_bytes: bytes) -> ExtractedText:
        """Load text content from a PDF file, one entry per page.

        Returns:
            The extracted text with page offsets.

        Raises:
            CorruptDocumentError: If the PDF cannot be parsed.
        """
        try:
            pdf_reader = pypdf.PdfReader(io.BytesIO(raw_bytes))
            pages = [page.extract_text() or "" for page in pdf_reader.pages]
        except (PyPdfError, ValueError, KeyError) as exc:
            logger.exception("Error loading PDF")
            msg = f"Unable to read PDF: {exc}"
            raise CorruptDocumentError(msg) from exc
        return _join_pages(pages)

    @staticmethod
    def load_docx(raw_bytes: bytes) -> ExtractedText:
        """Load paragraphs and table cells from a Word document.

        Returns:
            The extracted text.

        Raises:
            CorruptDocumentError: If the file is not a readable .docx package.
        """
        try:
            document = docx.Document(io.BytesIO(raw_bytes))
            blocks = [p.text for p in document.paragraphs if p.text.strip()]
            for table in document.tables:
                for row in table.rows:
                    cells = [cell.text.strip() for cell in row.cells]
                    if any(cells):
                        blocks.append(" | ".join(cells))
        except (DocxPackageNotFoundError, *_PACKAGE_ERRORS) as exc:
            logger.exception("Error loading Word document")
            msg = f"Unable to read Word document: {exc}"
            raise CorruptDocumentError(msg) from exc
        return ExtractedText(text="\n\n".join(blocks))

    @staticmethod
    def load_pptx(raw_bytes: bytes) -> ExtractedText:
        """Load slide text, one entry per slide.

        Returns:
            The extracted text with slide offsets.

        Raises:
            CorruptDocumentError: If the file is not a readable .pptx package.
        """
        try:
            presentation = pptx.Presentation(io.BytesIO(raw_bytes))
            slides: list[str] = []
            for slide in presentation.slides:
                lines: list[str] = []
                for shape in slide.shapes:
                    if shape.has_text_frame and shape.text_frame.text.strip():
                        lines.append(shape.text_frame.text)
                    elif shape.has_table:
                        lines.extend(
                            " | ".join(cell.text.strip() for cell in row.cells)
                            for row in shape.table.rows
                        )
                slides.append("\n".join(lines))
        except (PptxPackageNotFoundError, *_PACKAGE_ERRORS) as exc:
            logger.exception("Error loading slide deck")
            msg = f"Unable to read slide deck: {exc}"
            raise CorruptDocumentError(msg) from exc
        return _join_pages(slides)

    @staticmethod
    def load_xlsx(raw_bytes: bytes) -> ExtractedText:
        """Load every non-empty row of every worksheet as tab-separated text.

        Returns:
            The extracted text.

        Raises:
            CorruptDocumentError: If the workbook cannot be opened or read.
        """
        try:
            workbook = openpyxl.load_workbook(
                io.BytesIO(raw_bytes), read_only=True, data_only=True
            )
        except (InvalidFileException, ValueError, *_PACKAGE_ERRORS) as exc:
            logger.exception("Error loading spreadsheet")
            msg = f"Unable to read spreadsheet: {exc}"
            raise CorruptDocumentError(msg) from exc

        try:
            sections: list[str] = []
            for sheet in workbook.worksheets:
                rows = [
                    "\t".join("" if value is None else str(value) for value in row)
                    for row in sheet.iter_rows(values_only=True)
                    if any(value is not None for value in row)
                ]
                if rows:
                    sections.append(f"Sheet: {sheet.title}\n" + "\n".join(rows))
        except (ValueError, *_PACKAGE_ERRORS) as exc:
            logger.exception("Error reading spreadsheet rows")
            msg = f"Unable to read spreadsheet: {exc}"
            raise CorruptDocumentError(msg) from exc
        finally:
            workbook.close()
        return ExtractedText(text="\n\n".join(sections))

    @classmethod
    def extract(cls, raw_bytes: bytes, source_format: SourceFormat) -> ExtractedText:
        """Extract text and page offsets for a declared source format.

        Returns:
            The extracted text.

        Raises:
            UnsupportedFormatError: If no extractor handles the format.
        """
        loaders = {
            SourceFormat.TEXT: cls.load_txt,
            SourceFormat.PDF: cls.load_pdf,
            SourceFormat.WORD: cls.load_docx,
            SourceFormat.SLIDES: cls.load_pptx,
            SourceFormat.SPREADSHEET: cls.load_xlsx,
        }
        loader = loaders.get(source_format)
        if loader is None:
            msg = f"No extractor for source format {source_format!r}"
            raise UnsupportedFormatError(msg)
        return loader(raw_bytes)

    @classmethod
    def extract_text(cls, raw_bytes: bytes, source_format: SourceFormat) -> str:
        """Extract plain text for a declared source format.

        Returns:
            The text content of the document as a string.
        """
        return cls.extract(raw_bytes, source_format).text

    @classmethod
    def load_document(cls, file_path: Path) -> ExtractedText:
        """Load document from disk based on file extension.

        Args:
            file_path: Path to the document file.

        Returns:
            The extracted text of the document.
        """
        source_format = SourceFormat.from_filename(file_path.name)
        return cls.extract(file_path.read_bytes(), source_format)


class TextChunker:
    """Splits text into overlapping, size-bounded chunks measured in characters."""

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        """Initialize the TextChunker with chunk size and overlap.

        Args:
            chunk_size: The maximum number of characters in a chunk.
            overlap: The number of characters each chunk repeats from the
                end of the previous one.

        Raises:
            ValueError: If ``chunk_size > overlap >= 0`` does not hold.
        """
        if not 0 <= overlap < chunk_size:
            msg = (
                f"chunk_size must exceed overlap >= 0 "
                f"(chunk_size={chunk_size}, overlap={overlap})"
            )
            raise ValueError(msg)
        self.chunk_size = chunk_size
        self.overlap = overlap

    def _find_break(self, text: str, start: int, limit: int) -> int:
        """Return the end offset for a chunk starting at ``start``.

        Only breaks past the minimum end are accepted so that chunks keep at
        least half their size and the next start always moves forward.
        """
        min_end = start + max(self.overlap, self.chunk_size // 2)

        for separator in _BOUNDARIES:
            position = text.rfind(separator, min_end, limit)
            if position != -1:
                return position + len(separator)

        for position in range(limit - 1, min_end - 1, -1):
            if text[position].isspace():
                return position + 1

        return limit

    def spans(self, text: str) -> Iterator[tuple[int, int]]:
        """Yield ``(start, end)`` offsets of each chunk in source order."""
        if not text.strip():
            return

        start = 0
        length = len(text)
        while True:
            limit = min(start + self.chunk_size, length)
            if limit == length:
                yield start, length
                return
            end = self._find_break(text, start, limit)
            yield start, end
            start = end - self.overlap

    def split(self, text: str) -> Iterator[str]:
        """Lazily split text into chunk strings; call again to restart."""
        for start, end in self.spans(text):
            yield text[start:end]

    def chunk_document(
        self,
        text: str,
        document_id: str,
        page_starts: Sequence[int] = (),
    ) -> list[Chunk]:
        """Split text into Chunk records owned by ``document_id``.

        Spans holding only whitespace are skipped, so positions count the
        chunks actually returned.

        Returns:
            Chunks in emission order, with page numbers when page offsets
            are known.
        """
        chunks = []
        for start, end in self.spans(text):
            if not text[start:end].strip():
                continue
            position = len(chunks)
            page_number = bisect_right(page_starts, start) if page_starts else None
            chunks.append(
                Chunk(
                    id=Chunk.make_id(document_id, position),
                    document_id=document_id,
                    text=text[start:end],
                    position=position,
                    page_number=page_number,
                    start_char=start,
                    end_char=end,
                )
            )

        logger.info("Text split into %d chunks", len(chunks))
        return chunks
