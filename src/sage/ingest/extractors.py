"""Text extractors — one function per document kind, plus the OCR fallback.

Every extractor returns normalised text. OCR work happens inside a
temporary directory that is removed whether or not OCR succeeds.
"""

from __future__ import annotations

import logging
import re
import subprocess
import tempfile
from enum import Enum
from pathlib import Path
from typing import Callable

from sage.config import OCRConfig

log = logging.getLogger(__name__)


class DocKind(str, Enum):
    PDF = "pdf"
    DOCX = "docx"
    IMAGE = "image"
    TXT = "txt"


PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
IMAGE_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg", ".webp", ".tif", ".tiff", ".bmp"})


def guess_kind(mime_type: str, path: str | Path) -> DocKind:
    """Classify by declared MIME type first, then by file extension."""
    ext = Path(path).suffix.lower()
    mime_type = (mime_type or "").lower()

    if mime_type == PDF_MIME or ext == ".pdf":
        return DocKind.PDF
    if mime_type == DOCX_MIME or ext == ".docx":
        return DocKind.DOCX
    if mime_type.startswith("image/") or ext in IMAGE_EXTENSIONS:
        return DocKind.IMAGE
    return DocKind.TXT


def normalize_text(text: str) -> str:
    """Unify line endings, drop trailing blanks, collapse runs of blank lines."""
    text = text.replace("\r\n", "\n")
    text = re.sub(r"[ \t]+\n", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


# ---------------------------------------------------------------------------
# OCR
# ---------------------------------------------------------------------------

def ocr_image_file(path: Path, language: str = "eng") -> str:
    """Run Tesseract over an image already on disk."""
    import pytesseract
    from PIL import Image

    with Image.open(path) as img:
        return normalize_text(pytesseract.image_to_string(img, lang=language))


def ocr_image(path: Path, ocr: OCRConfig) -> str:
    """Grayscale + contrast-normalise an image, then OCR it."""
    from PIL import Image, ImageOps

    with tempfile.TemporaryDirectory(prefix="sage-ocr-img-") as tmp:
        processed = Path(tmp) / "img.png"
        with Image.open(path) as img:
            ImageOps.autocontrast(ImageOps.grayscale(img)).save(processed, format="PNG")
        return ocr_image_file(processed, ocr.language)


def _page_number(p: Path) -> int:
    digits = re.sub(r"\D", "", p.stem)
    return int(digits) if digits else 0


def ocr_scanned_pdf(path: Path, ocr: OCRConfig) -> str:
    """Rasterise the first ``ocr.max_pages`` pages with pdftoppm and OCR each one."""
    with tempfile.TemporaryDirectory(prefix="sage-ocr-pdf-") as tmp:
        prefix = Path(tmp) / "page"
        subprocess.run(
            [
                "pdftoppm",
                "-png",
                "-r", str(ocr.dpi),
                "-f", "1",
                "-l", str(ocr.max_pages),
                str(path),
                str(prefix),
            ],
            check=True,
            capture_output=True,
        )

        pages = sorted(Path(tmp).glob("page-*.png"), key=_page_number)
        parts: list[str] = []
        for i, page in enumerate(pages, 1):
            page_text = ocr_image_file(page, ocr.language)
            if page_text:
                parts.append(f"[PAGE {i}]\n{page_text}")

        log.info("OCR read %d page(s) from %s", len(pages), path.name)
        return normalize_text("\n\n".join(parts))


# ---------------------------------------------------------------------------
# Per-kind extractors
# ---------------------------------------------------------------------------

def extract_pdf_text(path: Path) -> str:
    """Direct text-layer extraction via pypdf."""
    import pypdf

    reader = pypdf.PdfReader(str(path))
    parts = [page.extract_text() or "" for page in reader.pages]
    return normalize_text("\n\n".join(parts))


def extract_pdf(path: Path, ocr: OCRConfig) -> str:
    """Extract a PDF, falling back to OCR when the text layer is too thin.

    The longer of the two results wins, so a partially scanned PDF never
    loses the text it does have.
    """
    parsed = extract_pdf_text(path)
    if not ocr.enabled or len(parsed) >= ocr.min_text_chars:
        return parsed

    log.info(
        "Only %d chars extracted from %s (< %d); trying OCR",
        len(parsed), path.name, ocr.min_text_chars,
    )
    ocr_text = ocr_scanned_pdf(path, ocr)
    return ocr_text if len(ocr_text) > len(parsed) else parsed


def extract_docx(path: Path, ocr: OCRConfig | None = None) -> str:
    """Extract raw text from .docx preserving paragraph and table order."""
    from docx import Document as DocxDocument
    from lxml import etree

    doc = DocxDocument(str(path))
    parts: list[str] = []

    # Walk the body XML so paragraphs and tables come out in document order.
    body = doc.element.body
    ns = {"w": "http://schemas.openxmlformats.org/wordprocessingml/2006/main"}

    for child in body:
        tag = etree.QName(child).localname
        if tag == "p":
            text = "".join(r.text or "" for r in child.findall(".//w:t", ns))
            if text.strip():
                parts.append(text)
        elif tag == "tbl":
            for row in child.findall(".//w:tr", ns):
                cell_texts = [
                    "".join(r.text or "" for r in cell.findall(".//w:t", ns))
                    for cell in row.findall(".//w:tc", ns)
                ]
                parts.append(" | ".join(cell_texts))

    return normalize_text("\n\n".join(parts))


def extract_plain(path: Path, ocr: OCRConfig | None = None) -> str:
    return normalize_text(path.read_bytes().decode("utf-8", errors="replace"))


# ---------------------------------------------------------------------------
# Dispatch table
# ---------------------------------------------------------------------------

EXTRACTORS: dict[DocKind, Callable[[Path, OCRConfig], str]] = {
    DocKind.PDF: extract_pdf,
    DocKind.DOCX: extract_docx,
    DocKind.IMAGE: ocr_image,
    DocKind.TXT: extract_plain,
}


def extract_text(mime_type: str, storage_path: str | Path, ocr: OCRConfig) -> str:
    """Return normalised text for the stored file."""
    path = Path(storage_path)
    kind = guess_kind(mime_type, path)
    log.debug("Extracting %s as %s", path.name, kind.value)
    return EXTRACTORS[kind](path, ocr)
