"""
Page parser: classifies fetched payloads and extracts outgoing links from markup.
"""

import re
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional
from urllib.parse import urljoin, urldefrag, urlparse

from bs4 import BeautifulSoup

from .crawl_url import CrawlUrl


class PayloadType(Enum):
    """Kind of payload a page carries."""
    HTML = "html"
    TEXT = "text"
    BINARY = "binary"


@dataclass
class WebLink:
    """A link found on a page."""
    url: str
    anchor: Optional[str] = None


@dataclass
class Page:
    """Fetched and parsed content of one CrawlUrl."""
    crawl_url: CrawlUrl
    content: bytes = b''
    content_type: str = ''
    charset: Optional[str] = None
    payload_type: PayloadType = PayloadType.BINARY
    title: Optional[str] = None
    text: Optional[str] = None
    outgoing_links: List[WebLink] = field(default_factory=list)

    @property
    def url(self) -> str:
        return self.crawl_url.url


HTML_TYPES = ('text/html', 'application/xhtml+xml')
TEXT_TYPES = (
    'text/',
    'application/xml',
    'application/json',
    'application/ld+json',
)


class ContentParser:
    """
    Parses fetched content. HTML pages get their title, text and links
    extracted; other text payloads are decoded; binary payloads are accepted
    as-is.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.whitespace_pattern = re.compile(r'\s+')

    def parse(self, page: Page, url: str) -> bool:
        """
        Parse the content of a fetched page in place.

        Args:
            page: Page whose content has been fetched
            url: The URL the content was fetched from, used to resolve links

        Returns:
            False if the content could not be parsed
        """
        page.payload_type = self._get_payload_type(page.content_type)

        if page.payload_type is PayloadType.BINARY:
            return True

        try:
            text = self._decode(page.content, page.charset)
        except (UnicodeDecodeError, LookupError) as e:
            self.logger.warning(f"Could not decode content from {url}: {e}")
            return False

        if page.payload_type is PayloadType.TEXT:
            page.text = text
            return True

        if not text.strip():
            self.logger.warning(f"Empty HTML content from {url}")
            return False

        try:
            soup = BeautifulSoup(text, 'lxml')

            for script in soup(["script", "style", "noscript"]):
                script.decompose()

            self._extract_title(soup, page)
            self._extract_links(soup, page, url)
            body = soup.find('body') or soup
            page.text = self._clean_text(body.get_text(separator=' ', strip=True))
        except Exception as e:
            self.logger.error(f"Error parsing content from {url}: {e}")
            return False

        self.logger.debug(f"Parsed {url}: {len(page.outgoing_links)} links")
        return True

    def _get_payload_type(self, content_type: str) -> PayloadType:
        content_type = (content_type or '').lower()
        if any(t in content_type for t in HTML_TYPES):
            return PayloadType.HTML
        if any(t in content_type for t in TEXT_TYPES):
            return PayloadType.TEXT
        return PayloadType.BINARY

    def _decode(self, content: bytes, charset: Optional[str]) -> str:
        """Decode content with the declared charset, falling back to common encodings."""
        if charset:
            return content.decode(charset)

        for fallback_encoding in ['utf-8', 'cp1252']:
            try:
                return content.decode(fallback_encoding)
            except UnicodeDecodeError:
                continue

        return content.decode('latin-1')

    def _extract_title(self, soup: BeautifulSoup, page: Page):
        """Extract page title."""
        title_tag = soup.find('title')
        if title_tag:
            page.title = self._clean_text(title_tag.get_text())

    def _extract_links(self, soup: BeautifulSoup, page: Page, base_url: str):
        """Extract absolute http(s) links with their anchor text."""
        seen = set()
        links = []

        for link in soup.find_all('a', href=True):
            href = link['href'].strip()
            if not href or href.startswith('#'):
                continue

            absolute_url, _ = urldefrag(urljoin(base_url, href))
            if urlparse(absolute_url).scheme not in ('http', 'https'):
                continue
            if absolute_url in seen:
                continue

            seen.add(absolute_url)
            anchor = self._clean_text(link.get_text())
            links.append(WebLink(url=absolute_url, anchor=anchor or None))

        page.outgoing_links = links

    def _clean_text(self, text: str) -> str:
        """Collapse whitespace."""
        if not text:
            return ""
        return self.whitespace_pattern.sub(' ', text.strip())
