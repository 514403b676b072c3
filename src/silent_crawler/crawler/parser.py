"""
HTML parser for extracting raw links from fetched pages.
"""

import logging
import re
import warnings
from dataclasses import dataclass, field
from typing import List, Optional

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

warnings.filterwarnings("ignore", category=MarkupResemblesLocatorWarning)


@dataclass
class ParsedContent:
    """Container for the parts of a page the crawler uses."""
    url: str
    title: Optional[str] = None
    base_href: Optional[str] = None
    links: List[str] = field(default_factory=list)


class ContentParser:
    """
    Parses HTML content and returns the raw href values it links to.
    Links are not resolved or filtered here.
    """

    LINK_TAGS = ['a', 'area']

    def __init__(self, parser_backend: str = 'lxml'):
        self.parser_backend = parser_backend
        self.logger = logging.getLogger(__name__)
        self.whitespace_pattern = re.compile(r'\s+')

    def parse(self, url: str, html_content: str) -> ParsedContent:
        """
        Parse HTML content and extract raw links.

        Args:
            url: The URL of the page
            html_content: Raw HTML content

        Returns:
            ParsedContent with hrefs in document order
        """
        soup = BeautifulSoup(html_content, self.parser_backend)
        parsed_content = ParsedContent(url=url)

        title_tag = soup.find('title')
        if title_tag:
            parsed_content.title = self.whitespace_pattern.sub(' ', title_tag.get_text()).strip()

        base_tag = soup.find('base', href=True)
        if base_tag:
            parsed_content.base_href = base_tag['href'].strip() or None

        parsed_content.links = self.extract_links(soup)

        self.logger.debug(f"Parsed {url}: {len(parsed_content.links)} links")
        return parsed_content

    def extract_links(self, soup: BeautifulSoup) -> List[str]:
        """Return raw href strings of link elements, in document order."""
        links = []
        for element in soup.find_all(self.LINK_TAGS, href=True):
            href = element['href']
            if isinstance(href, list):
                href = href[0] if href else ''
            href = href.strip()
            if href:
                links.append(href)
        return links
