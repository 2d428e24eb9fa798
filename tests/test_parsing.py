import io

import fitz  # PyMuPDF
import pytest
from docx import Document

from recruitflow.core.errors import ExtractionError
from recruitflow.schemas.batch import UploadedFile
from recruitflow.services.documents.parsing import extract_text


def make_pdf(*pages):
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


def make_docx():
    doc = Document()
    doc.add_paragraph("Maria Silva")
    doc.add_paragraph("COO at Delta Logistics")
    table = doc.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "English"
    table.rows[0].cells[1].text = "Fluent"
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


def test_plain_text():
    upload = UploadedFile(filename="notes.txt", content="Notas da entrevista: ótima".encode())
    assert extract_text(upload) == "Notas da entrevista: ótima"


def test_pdf_pages_are_marked():
    upload = UploadedFile(filename="cv.PDF", content=make_pdf("Maria Silva", "Experience"))
    text = extract_text(upload)
    assert "--- Page 1 ---" in text
    assert "--- Page 2 ---" in text
    assert "Maria Silva" in text
    assert text.index("Maria Silva") < text.index("Experience")


def test_docx_paragraphs_and_tables():
    text = extract_text(UploadedFile(filename="cv.docx", content=make_docx()))
    assert "Maria Silva" in text
    assert "COO at Delta Logistics" in text
    assert "English | Fluent" in text


def test_reads_from_path(tmp_path):
    path = tmp_path / "joao_pereira_cv.txt"
    path.write_text("Joao Pereira, CFO")
    upload = UploadedFile.from_path(path)
    assert upload.filename == "joao_pereira_cv.txt"
    assert extract_text(upload) == "Joao Pereira, CFO"


def test_corrupt_pdf_raises_extraction_error():
    with pytest.raises(ExtractionError) as exc:
        extract_text(UploadedFile(filename="broken.pdf", content=b"not really a pdf"))
    assert exc.value.filename == "broken.pdf"
    assert str(exc.value).startswith("could not read file broken.pdf")


def test_empty_file_raises_extraction_error():
    with pytest.raises(ExtractionError) as exc:
        extract_text(UploadedFile(filename="empty.txt", content=b"  \n "))
    assert exc.value.reason == "no extractable text"


def test_missing_content_raises_extraction_error():
    with pytest.raises(ExtractionError):
        extract_text(UploadedFile(filename="ghost.txt"))
