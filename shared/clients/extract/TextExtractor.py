"""Format-specific text extraction for uploaded documents.

Supports plain text, Markdown and HTML. Binary office formats are reported as
UnsupportedFormat so the document ends in status error instead of being embedded
as garbage.
"""

import os
import re

from bs4 import BeautifulSoup

from shared.exceptions.errors import ExtractionFailed, UnsupportedFormat
from shared.helper.HelperConfig import HelperConfig

_CONTENT_TYPES = {
    ".txt": "text/plain",
    ".text": "text/plain",
    ".md": "text/markdown",
    ".markdown": "text/markdown",
    ".html": "text/html",
    ".htm": "text/html",
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


class TextExtractor:
    """Turns raw upload bytes into text."""

    def __init__(self, helper_config: HelperConfig) -> None:
        self.logging = helper_config.get_logger()
        self._encoding = helper_config.get_string_val("EXTRACT_ENCODING", default="utf-8")

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_content_type(self, filename: str) -> str:
        """Determine the content type from a file name's extension.

        Returns:
            str: The content type, or "application/octet-stream" when unknown.
        """
        ext = os.path.splitext(filename or "")[1].lower()
        return _CONTENT_TYPES.get(ext, "application/octet-stream")

    ##########################################
    ################ CORE ####################
    ##########################################

    def extract(self, raw_bytes: bytes, mime_hint: str) -> str:
        """Extract text from raw bytes.

        Args:
            raw_bytes (bytes): The uploaded file content.
            mime_hint (str): Content type, e.g. from get_content_type().

        Returns:
            str: The extracted text.

        Raises:
            UnsupportedFormat: If there is no strategy for mime_hint.
            ExtractionFailed: If the bytes cannot be decoded or parsed.
        """
        mime = (mime_hint or "").split(";")[0].strip().lower()
        if mime == "text/plain":
            return self._decode(raw_bytes)
        if mime == "text/markdown":
            return self._clean_markdown(self._decode(raw_bytes))
        if mime == "text/html":
            return self._clean_html(self._decode(raw_bytes))
        raise UnsupportedFormat(f"Unsupported content type: {mime or 'unknown'}")

    ##########################################
    ############### HELPERS ##################
    ##########################################

    def _decode(self, raw_bytes: bytes) -> str:
        try:
            text = raw_bytes.decode(self._encoding)
        except UnicodeDecodeError as exc:
            raise ExtractionFailed(f"Content is not valid {self._encoding}: {exc}") from exc
        return text.replace("\r\n", "\n").lstrip("\ufeff")

    def _clean_html(self, html: str) -> str:
        """Extract readable text from HTML, dropping scripts and page chrome."""
        soup = BeautifulSoup(html, "html.parser")
        for element in soup(["script", "style", "nav", "footer", "header", "aside"]):
            element.decompose()
        text = soup.get_text(separator="\n")
        lines = (line.strip() for line in text.splitlines())
        # keep blank lines between blocks so the chunker sees paragraph boundaries
        text = "\n".join(lines)
        return re.sub(r"\n{3,}", "\n\n", text).strip()

    def _clean_markdown(self, markdown: str) -> str:
        """Strip Markdown markup while keeping paragraph structure."""
        text = re.sub(r"```[\s\S]*?```", "", markdown)
        text = re.sub(r"!\[.*?\]\(.*?\)", "", text)
        text = re.sub(r"\[([^\]]+)\]\([^\)]+\)", r"\1", text)
        text = re.sub(r"^#{1,6}\s+", "", text, flags=re.MULTILINE)
        text = re.sub(r"\*\*([^*]+)\*\*", r"\1", text)
        text = re.sub(r"__([^_]+)__", r"\1", text)
        text = re.sub(r"`([^`]+)`", r"\1", text)
        text = re.sub(r"\n{3,}", "\n\n", text)
        return text.strip()
