"""Unit tests for document extraction and chunking."""

import io
from unittest.mock import Mock, patch
from xml.etree.ElementTree import ParseError

import docx
import openpyxl
import pptx
import pytest
from pptx.util import Inches

from ragchat import (
    CorruptDocumentError,
    DocumentLoader,
    SourceFormat,
    TextChunker,
    UnsupportedFormatError,
)
from ragchat.document_processing import PAGE_SEPARATOR

from conftest import make_broken_office_package


def reconstruct(chunks: list[str], overlap: int) -> str:
    if not chunks:
        return ""
    return chunks[0] + "".join(chunk[overlap:] for chunk in chunks[1:])


# Extraction


@pytest.mark.parametrize(
    ("filename", "expected"),
    [
        ("notes.txt", SourceFormat.TEXT),
        ("README.MD", SourceFormat.TEXT),
        ("report.pdf", SourceFormat.PDF),
        ("letter.DOCX", SourceFormat.WORD),
        ("deck.pptx", SourceFormat.SLIDES),
        ("budget.xlsx", SourceFormat.SPREADSHEET),
    ],
)
def test_source_format_from_filename(filename, expected):
    assert SourceFormat.from_filename(filename) is expected


@pytest.mark.parametrize("filename", ["image.png", "archive.zip", "noextension"])
def test_unsupported_file_type(filename):
    with pytest.raises(UnsupportedFormatError, match="Unsupported file type"):
        SourceFormat.from_filename(filename)


def test_load_txt_strips_bom():
    extracted = DocumentLoader.extract("\ufeffHello world".encode(), SourceFormat.TEXT)

    assert extracted.text == "Hello world"
    assert extracted.page_starts == ()


def test_load_txt_invalid_utf8():
    with pytest.raises(CorruptDocumentError, match="UTF-8"):
        DocumentLoader.extract_text(b"\xff\xfe\xfa", SourceFormat.TEXT)


def test_load_pdf_records_page_offsets():
    pages = [Mock(), Mock(), Mock()]
    pages[0].extract_text.return_value = "First page"
    pages[1].extract_text.return_value = None
    pages[2].extract_text.return_value = "Third page"

    with patch("ragchat.document_processing.pypdf.PdfReader") as mock_reader:
        mock_reader.return_value.pages = pages
        extracted = DocumentLoader.extract(b"%PDF-fake", SourceFormat.PDF)

    sep = len(PAGE_SEPARATOR)
    assert extracted.text == PAGE_SEPARATOR.join(["First page", "", "Third page"])
    assert extracted.page_starts == (0, 10 + sep, 10 + 2 * sep)


def test_load_corrupt_pdf():
    with pytest.raises(CorruptDocumentError, match="Unable to read PDF"):
        DocumentLoader.extract(b"this is not a pdf", SourceFormat.PDF)


def test_load_docx_paragraphs_and_tables():
    document = docx.Document()
    document.add_paragraph("Quarterly report")
    document.add_paragraph("   ")
    document.add_paragraph("Revenue grew strongly.")
    table = document.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "Region"
    table.rows[0].cells[1].text = "North"
    buffer = io.BytesIO()
    document.save(buffer)

    text = DocumentLoader.extract_text(buffer.getvalue(), SourceFormat.WORD)

    assert text == "Quarterly report\n\nRevenue grew strongly.\n\nRegion | North"


def test_load_pptx_slide_offsets():
    presentation = pptx.Presentation()
    for body in ("Intro slide", "Second slide"):
        slide = presentation.slides.add_slide(presentation.slide_layouts[6])
        box = slide.shapes.add_textbox(Inches(1), Inches(1), Inches(4), Inches(1))
        box.text_frame.text = body
    buffer = io.BytesIO()
    presentation.save(buffer)

    extracted = DocumentLoader.extract(buffer.getvalue(), SourceFormat.SLIDES)

    assert extracted.text == f"Intro slide{PAGE_SEPARATOR}Second slide"
    assert extracted.page_starts == (0, len("Intro slide") + len(PAGE_SEPARATOR))


def test_load_xlsx_rows():
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = "Invoices"
    sheet.append(["Item", "Total"])
    sheet.append(["Widget", 42])
    buffer = io.BytesIO()
    workbook.save(buffer)

    text = DocumentLoader.extract_text(buffer.getvalue(), SourceFormat.SPREADSHEET)

    assert text == "Sheet: Invoices\nItem\tTotal\nWidget\t42"


@pytest.mark.parametrize(
    "source_format",
    [SourceFormat.WORD, SourceFormat.SLIDES, SourceFormat.SPREADSHEET],
)
@pytest.mark.parametrize(
    "raw_bytes",
    [b"definitely not a zip archive", make_broken_office_package()],
    ids=["not-a-zip", "malformed-xml"],
)
def test_corrupt_office_documents(source_format, raw_bytes):
    with pytest.raises(CorruptDocumentError):
        DocumentLoader.extract(raw_bytes, source_format)


def test_spreadsheet_row_read_failure_is_corrupt():
    sheet = Mock(title="Sheet1")
    sheet.iter_rows.side_effect = ParseError("unclosed token")
    workbook = Mock(worksheets=[sheet])

    with (
        patch.object(openpyxl, "load_workbook", return_value=workbook),
        pytest.raises(CorruptDocumentError, match="unclosed token"),
    ):
        DocumentLoader.load_xlsx(b"PK")

    workbook.close.assert_called_once()


def test_load_document_from_path(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("Saved on disk", encoding="utf-8")

    assert DocumentLoader.load_document(path).text == "Saved on disk"


def test_load_nonexistent_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        DocumentLoader.load_document(tmp_path / "nonexistent_file.txt")


# Chunking


@pytest.mark.parametrize(("chunk_size", "overlap"), [(10, 10), (10, 11), (10, -1)])
def test_chunker_rejects_invalid_geometry(chunk_size, overlap):
    with pytest.raises(ValueError, match="chunk_size must exceed overlap"):
        TextChunker(chunk_size=chunk_size, overlap=overlap)


@pytest.mark.parametrize("text", ["", "   ", "\n\n\t  \n"])
def test_empty_and_whitespace_text_yield_no_chunks(text_chunker_factory, text):
    chunker = text_chunker_factory("small")

    assert list(chunker.split(text)) == []
    assert chunker.chunk_document(text, "doc") == []


def test_short_text_is_single_chunk(text_chunker_factory):
    chunker = text_chunker_factory("small")

    assert list(chunker.split("  A short note.  ")) == ["  A short note.  "]


@pytest.mark.parametrize(
    ("chunk_size", "overlap"),
    [(100, 20), (50, 0), (64, 63), (200, 50), (30, 10)],
)
def test_chunk_properties(chunk_size, overlap):
    text = (
        "Machine learning is a subset of artificial intelligence. "
        "It learns patterns from data!\n\nNeural networks are models. "
        "Supercalifragilisticexpialidociousandevenlongerwordwithoutbreaks "
        "ends here? Yes.\nA final line without a period"
    ) * 3
    chunker = TextChunker(chunk_size=chunk_size, overlap=overlap)

    chunks = list(chunker.split(text))

    assert len(chunks) > 1
    assert all(0 < len(chunk) <= chunk_size for chunk in chunks)
    assert reconstruct(chunks, overlap) == text
    for previous, current in zip(chunks, chunks[1:], strict=False):
        assert previous[len(previous) - overlap :] == current[:overlap]


def test_chunk_offsets_overlap_exactly(text_chunker_factory):
    chunker = text_chunker_factory("small")
    text = "This is a test document. " * 20

    chunks = chunker.chunk_document(text, "doc")

    for previous, current in zip(chunks, chunks[1:], strict=False):
        assert previous.end_char - current.start_char == 20
    assert chunks[-1].end_char == len(text)


def test_chunker_prefers_paragraph_boundaries():
    first = "Alpha paragraph sentence one. Sentence two is here."
    second = "Beta paragraph continues with more words to fill the window."
    text = f"{first}\n\n{second}"
    chunker = TextChunker(chunk_size=70, overlap=0)

    chunks = list(chunker.split(text))

    assert chunks[0] == f"{first}\n\n"
    assert chunks[1] == second


def test_chunker_falls_back_to_sentence_then_space():
    text = "One two three. Four five six seven eight nine ten eleven twelve"
    chunker = TextChunker(chunk_size=24, overlap=0)

    chunks = list(chunker.split(text))

    assert chunks[0] == "One two three. "
    assert chunks[1].endswith(" ")


def test_oversized_word_is_force_cut():
    text = "x" * 95
    chunker = TextChunker(chunk_size=40, overlap=10)

    chunks = list(chunker.split(text))

    assert [len(chunk) for chunk in chunks] == [40, 40, 35]
    assert reconstruct(chunks, 10) == text


def test_split_is_restartable():
    chunker = TextChunker(chunk_size=30, overlap=5)
    text = "Restartable splitting should give identical output every time."

    first = chunker.split(text)
    next(first)

    assert list(chunker.split(text)) == list(chunker.split(text))


def test_exact_multiple_without_overlap():
    chunker = TextChunker(chunk_size=10, overlap=0)

    chunks = list(chunker.split("abcdefghij" * 3))

    assert chunks == ["abcdefghij"] * 3


def test_chunk_document_positions_and_pages():
    text = "Page one text here. " * 3 + "Page two text here. " * 3
    page_starts = (0, 60)
    chunker = TextChunker(chunk_size=40, overlap=0)

    chunks = chunker.chunk_document(text, "doc42", page_starts)

    assert [chunk.position for chunk in chunks] == list(range(len(chunks)))
    assert all(chunk.id == f"doc42:{chunk.position}" for chunk in chunks)
    assert all(chunk.document_id == "doc42" for chunk in chunks)
    for chunk in chunks:
        expected_page = 1 if chunk.start_char < 60 else 2
        assert chunk.page_number == expected_page


def test_chunk_document_without_pages():
    chunker = TextChunker(chunk_size=50, overlap=5)

    chunks = chunker.chunk_document("No page information available.", "doc")

    assert chunks[0].page_number is None


def test_chunk_document_skips_whitespace_only_spans():
    text = "a" + " " * 25 + "b" + " " * 25
    chunker = TextChunker(chunk_size=10, overlap=0)

    chunks = chunker.chunk_document(text, "doc")

    assert len(list(chunker.split(text))) == 6
    assert [chunk.text.strip() for chunk in chunks] == ["a", "b"]
    assert [chunk.position for chunk in chunks] == [0, 1]
    assert [chunk.id for chunk in chunks] == ["doc:0", "doc:1"]
    assert text[chunks[1].start_char : chunks[1].end_char] == chunks[1].text
