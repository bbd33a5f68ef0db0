"""
URL crawler adapter.

Fetches a page over httpx and reduces its HTML to plain text: scripts,
styles and navigation chrome are dropped, tags stripped, whitespace
collapsed.

Dependencies: httpx
System role: UrlCrawler collaborator implementation
"""

import html
import logging
import re
from datetime import datetime, timezone

import httpx

from rag_pipeline.core.exceptions import (
    CollaboratorError,
    ConnectivityError,
    OperationTimeoutError,
    ValidationError,
)
from rag_pipeline.models.collaborators import CrawlResult

logger = logging.getLogger(__name__)

_DROP_BLOCKS = re.compile(
    r"<(script|style|noscript|nav|header|footer|aside|form)\b[^>]*>.*?</\1\s*>",
    re.IGNORECASE | re.DOTALL,
)
_TITLE = re.compile(r"<title[^>]*>(.*?)</title\s*>", re.IGNORECASE | re.DOTALL)
_H1 = re.compile(r"<h1[^>]*>(.*?)</h1\s*>", re.IGNORECASE | re.DOTALL)
_DESCRIPTION = re.compile(
    r'<meta[^>]+name=["\']description["\'][^>]+content=["\']([^"\']*)["\']',
    re.IGNORECASE,
)
_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")


def html_to_text(markup: str) -> str:
    text = _DROP_BLOCKS.sub(" ", markup)
    text = _TAG.sub(" ", text)
    return _WHITESPACE.sub(" ", html.unescape(text)).strip()


def extract_title(markup: str) -> str:
    for pattern in (_TITLE, _H1):
        match = pattern.search(markup)
        if match:
            title = html_to_text(match.group(1))
            if title:
                return title
    return ""


class HttpUrlCrawler:
    """UrlCrawler over httpx."""

    def __init__(
        self,
        user_agent: str = "rag-pipeline-crawler/0.1",
        max_content_chars: int = 100_000,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._user_agent = user_agent
        self._max_content_chars = max_content_chars
        self._client = client

    async def _get(self, url: str, timeout_s: float) -> httpx.Response:
        headers = {"User-Agent": self._user_agent, "Accept": "text/html,application/xhtml+xml"}
        if self._client is not None:
            return await self._client.get(url, headers=headers, timeout=timeout_s, follow_redirects=True)
        async with httpx.AsyncClient(timeout=timeout_s, follow_redirects=True) as client:
            return await client.get(url, headers=headers)

    async def crawl(self, url: str, timeout_s: float = 15.0) -> CrawlResult:
        """
        Fetch and extract one page.

        Args:
            url: http(s) URL
            timeout_s: Request timeout

        Returns:
            CrawlResult: Title, text content and response metadata

        Raises:
            ValidationError: Not an http(s) URL
            OperationTimeoutError / ConnectivityError / CollaboratorError
        """
        if not url.lower().startswith(("http://", "https://")):
            raise ValidationError("Only http(s) URLs can be crawled", field="url")

        try:
            response = await self._get(url, timeout_s)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise OperationTimeoutError("Crawl timed out", operation="crawl", timeout_s=timeout_s) from e
        except httpx.TransportError as e:
            raise ConnectivityError(f"Crawl failed: {e}") from e
        except httpx.HTTPStatusError as e:
            raise CollaboratorError(
                f"Crawl returned {e.response.status_code}",
                collaborator="url_crawler",
                details={"url": url},
            ) from e

        content_type = response.headers.get("content-type", "")
        markup = response.text
        if "html" in content_type or not content_type:
            content = html_to_text(markup)
            title = extract_title(markup)
            description_match = _DESCRIPTION.search(markup)
            description = html.unescape(description_match.group(1)) if description_match else None
        else:
            content = _WHITESPACE.sub(" ", markup).strip()
            title = ""
            description = None

        content = content[: self._max_content_chars]
        logger.info(f"{__name__}:crawl - Extracted {len(content.split())} words from {url}")
        return CrawlResult(
            url=str(response.url),
            title=title,
            content=content,
            word_count=len(content.split()),
            extracted_at=datetime.now(timezone.utc),
            metadata={
                "status_code": response.status_code,
                "content_type": content_type,
                "description": description,
            },
        )
