import fitz
import pytest

import bundler.assembler


@pytest.fixture
def make_pdf():
    """Build an in-memory PDF whose pages carry the text '<marker>-p<n>'."""
    def _make(pages: int = 1, marker: str = "doc", width: float = 595, height: float = 842) -> bytes:
        doc = fitz.open()
        for n in range(1, pages + 1):
            page = doc.new_page(width=width, height=height)
            page.insert_text((72, 72), f"{marker}-p{n}", fontsize=12, fontname="helv")
        data = doc.tobytes()
        doc.close()
        return data

    return _make


@pytest.fixture
def read_pdf():
    """Return the extracted text of every page, stripped."""
    def _read(data: bytes):
        with fitz.open(stream=data, filetype="pdf") as doc:
            return [page.get_text().strip() for page in doc]

    return _read


@pytest.fixture
def stamps(monkeypatch):
    """Record every text stamp drawn by the assembler."""
    calls = []
    original = bundler.assembler._insert_text

    def _record(page, point, text, fontsize, fontname):
        calls.append({
            "page": page.number,
            "width": page.rect.width,
            "height": page.rect.height,
            "x": point.x,
            "y": point.y,
            "text": text,
            "size": fontsize,
            "font": fontname,
        })
        original(page, point, text, fontsize, fontname)

    monkeypatch.setattr("bundler.assembler._insert_text", _record)
    return calls
