"""
Document text loading for the CLI.
"""

import logging
from pathlib import Path

import pdfplumber

logger = logging.getLogger(__name__)


def extract_pdf_text(source) -> str:
    """
    Extract text from a PDF using pdfplumber.

    Tables are emitted as tab-separated rows after each page's text so the
    tab-separated layout can be detected.

    Args:
        source: Path or binary file object

    Returns:
        Extracted text from all pages
    """
    text_content = []

    with pdfplumber.open(source) as pdf:
        for page in pdf.pages:
            page_text = page.extract_text()
            if page_text:
                text_content.append(page_text)

            for table in page.extract_tables():
                if table:
                    rows = [
                        "\t".join(str(cell) if cell else "" for cell in row) for row in table
                    ]
                    text_content.append("\n".join(rows))

        logger.debug("Extracted %d text block(s) from %d page(s)", len(text_content), len(pdf.pages))

    return "\n\n".join(text_content)


def load_text(path: str | Path) -> str:
    """Read an estimate or report file; PDFs go through pdfplumber, anything else is UTF-8 text."""
    path = Path(path)
    if path.suffix.lower() == ".pdf":
        return extract_pdf_text(path)
    return path.read_text(encoding="utf-8")
