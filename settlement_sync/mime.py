"""MIME extraction over the provider's part tree.

Walks the ``MailPart`` tree of a ``format=full`` message to recover the
text and HTML bodies and the attachment descriptors.  Attachment bodies
are never downloaded here; only what the message resource already
carries is recorded.
"""

from __future__ import annotations

import base64
import binascii
import html
import re
from dataclasses import dataclass, field

from .models import Category, MailMessage, MailPart

PLAIN = "text/plain"
HTML = "text/html"

_TAG_RE = re.compile(r"<[^>]+>")
_BLOCK_RE = re.compile(r"<\s*(br|/p|/div|/tr|/li)\b[^>]*>", re.IGNORECASE)
_SCRIPT_RE = re.compile(r"<(script|style)\b.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_SPACE_RE = re.compile(r"[ \t\r\f\v]+")


@dataclass
class AttachmentDescriptor:
    """An attachment declared in the part tree."""

    filename: str
    mime_type: str | None
    data: str | None = None
    attachment_id: str | None = None


@dataclass
class ExtractedContent:
    """Bodies and attachments recovered from one message."""

    body_text: str | None
    body_html: str | None
    snippet: str
    attachments: list[AttachmentDescriptor] = field(default_factory=list)

    @property
    def attachment_names(self) -> list[str]:
        return [a.filename for a in self.attachments]

    def parse_text(self) -> str:
        """Text to scan for an amount: plain, else HTML reduced to text, else snippet."""
        if self.body_text:
            return self.body_text
        if self.body_html:
            return html_to_text(self.body_html)
        return html.unescape(self.snippet)

    def archival_body(self, category: Category) -> str | None:
        """Canonical body to store for *category*.

        Amazon notices are HTML-first; Indifi notices keep the plain text.
        """
        if category is Category.AMAZON_SETTLEMENT:
            return self.body_html or self.body_text
        return self.body_text or self.body_html


def decode_base64url(data: str | None) -> str:
    """Decode provider base64url body data to text ("" when absent or corrupt)."""
    if not data:
        return ""
    padding = "=" * (-len(data) % 4)
    try:
        raw = base64.urlsafe_b64decode(data + padding)
    except (binascii.Error, ValueError):
        return ""
    return raw.decode("utf-8", errors="replace")


def html_to_text(markup: str) -> str:
    """Crude HTML to text: drop scripts/tags, keep line breaks, unescape entities."""
    text = _SCRIPT_RE.sub("", markup)
    text = _BLOCK_RE.sub("\n", text)
    text = _TAG_RE.sub(" ", text)
    text = html.unescape(text).replace("\xa0", " ")
    lines = (_SPACE_RE.sub(" ", line).strip() for line in text.splitlines())
    return "\n".join(line for line in lines if line)


def collect_attachments(part: MailPart | None) -> list[AttachmentDescriptor]:
    """Depth-first list of every part that declares a filename."""
    found: list[AttachmentDescriptor] = []

    def walk(node: MailPart) -> None:
        if node.filename:
            found.append(
                AttachmentDescriptor(
                    filename=node.filename,
                    mime_type=node.mime_type,
                    data=node.body.data,
                    attachment_id=node.body.attachment_id,
                )
            )
        for child in node.parts:
            walk(child)

    if part is not None:
        walk(part)
    return found


def find_body(part: MailPart | None, mime_type: str) -> str | None:
    """Decoded body of the first non-attachment part of *mime_type*, depth-first."""
    if part is None:
        return None
    if part.mime_type == mime_type and not part.filename and part.body.data:
        return decode_base64url(part.body.data)
    for child in part.parts:
        found = find_body(child, mime_type)
        if found is not None:
            return found
    return None


def extract_content(message: MailMessage) -> ExtractedContent:
    return ExtractedContent(
        body_text=find_body(message.payload, PLAIN),
        body_html=find_body(message.payload, HTML),
        snippet=message.snippet,
        attachments=collect_attachments(message.payload),
    )
