"""
Attachment processor.

Validates request attachments and turns the text-bearing ones (crawled
URLs, plain text and markdown files) into request documents. Binary
attachments (PDF, images) are passed through untouched for the
generator and contribute no text here.

Dependencies: None
System role: AttachmentProcessor collaborator implementation
"""

import base64
import binascii
import logging
from typing import Any

from rag_pipeline.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

MAX_TOTAL_SIZE = 30 * 1024 * 1024
TEXT_MIME_PREFIXES = ("text/",)
TEXT_MIME_TYPES = ("application/json", "application/xml", "application/markdown")


def _is_text_mime(mime: str) -> bool:
    return mime.startswith(TEXT_MIME_PREFIXES) or mime in TEXT_MIME_TYPES


def _decode_text(attachment: dict[str, Any], index: int) -> str:
    if isinstance(attachment.get("content"), str):
        return attachment["content"]
    data = attachment.get("data")
    if not isinstance(data, str):
        raise ValidationError(f"Attachment {index} has no content", field="attachments")
    try:
        return base64.b64decode(data).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Attachment {index} is not valid base64", field="attachments") from e


class TextAttachmentProcessor:
    """AttachmentProcessor extracting text documents."""

    def __init__(self, max_total_size: int = MAX_TOTAL_SIZE) -> None:
        self._max_total_size = max_total_size

    def validate(self, attachments: list[dict[str, Any]]) -> None:
        if not isinstance(attachments, list):
            raise ValidationError("Attachments must be a list", field="attachments")
        total = 0
        for index, attachment in enumerate(attachments):
            if not isinstance(attachment, dict) or not attachment.get("type"):
                raise ValidationError(f"Attachment {index} is malformed", field="attachments")
            if attachment["type"] == "crawled_url":
                total += len(attachment.get("content") or "")
            else:
                total += int(attachment.get("size") or 0)
        if total > self._max_total_size:
            raise ValidationError(
                f"Total attachment size too large ({total // (1024 * 1024)}MB)",
                field="attachments",
            )

    async def process(
        self,
        attachments: list[dict[str, Any]],
        use_privacy_mode: bool,
        request_type: str,
        user_id: str | None,
    ) -> dict[str, Any]:
        """
        Extract documents from attachments.

        Returns:
            dict: ``documents`` (list of dicts) and ``knowledge`` (list of str)
        """
        self.validate(attachments)
        documents: list[dict[str, Any]] = []
        skipped = 0
        for index, attachment in enumerate(attachments):
            kind = attachment["type"]
            if kind == "crawled_url":
                documents.append(
                    {
                        "type": "text",
                        "text": attachment.get("content") or "",
                        "title": attachment.get("displayUrl") or attachment.get("url") or "",
                        "url": attachment.get("url"),
                        "content_source": "url_crawl",
                    }
                )
            elif _is_text_mime(kind):
                documents.append(
                    {
                        "type": "text",
                        "text": _decode_text(attachment, index),
                        "title": attachment.get("name") or f"Anhang {index + 1}",
                        "content_source": "attachment",
                    }
                )
            else:
                skipped += 1

        logger.info(
            f"{__name__}:process - {len(documents)} text documents, {skipped} binary attachments "
            f"(type={request_type}, privacy={use_privacy_mode})"
        )
        return {"documents": documents, "knowledge": []}
