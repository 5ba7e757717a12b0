"""HTML extraction for listing and detail pages."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .errors import ParseError
from .models import ListingPage, ResultRecord


@dataclass(frozen=True)
class Selectors:
    book_links: str = ".home-featured-blockImageContainer > a"
    next_page: str = ".pagination li:nth-child(8) > a"
    title: str = ".details-right-column > h1"
    author: str = ".details-right-column > b > a"
    recommendations: str = ".product-reviews-inner"


class CatalogParser:
    """Pulls item links and item fields out of catalog pages."""

    def __init__(
        self,
        selectors: Optional[Selectors] = None,
        recommendation_header_prefix: str = "To βιβλίο",
        skip_unrecommended: bool = True,
    ) -> None:
        self.selectors = selectors or Selectors()
        self._header_prefix = recommendation_header_prefix
        self._skip_unrecommended = skip_unrecommended

    def parse_listing(self, html: str, page_url: str) -> ListingPage:
        """Return the item links on a listing page and the next page link, if any."""
        try:
            soup = BeautifulSoup(html, "html.parser")
            links: List[str] = []
            for anchor in soup.select(self.selectors.book_links):
                href = (anchor.get("href") or "").strip()
                if href:
                    links.append(urljoin(page_url, href))

            next_url = None
            next_anchor = soup.select_one(self.selectors.next_page)
            if next_anchor is not None:
                href = (next_anchor.get("href") or "").strip()
                if href:
                    next_url = urljoin(page_url, href)
        except Exception as exc:  # noqa: BLE001
            raise ParseError(page_url, exc, {"selector": self.selectors.book_links}) from exc
        return ListingPage(links=links, next_url=next_url)

    def parse_detail(self, html: str, url: str) -> Optional[ResultRecord]:
        """Extract a ResultRecord; None when the item has no recommendations and is skipped.

        Raises:
            ParseError: Title or author is missing, or the markup could not be read
        """
        try:
            soup = BeautifulSoup(html, "html.parser")
            title = self._text(soup, self.selectors.title)
            author = self._text(soup, self.selectors.author)
            count = self._recommendation_count(soup)
        except Exception as exc:  # noqa: BLE001
            raise ParseError(url, exc) from exc

        if not title or not author:
            raise ParseError(url, context={"title": title, "author": author})

        if count == 0 and self._skip_unrecommended:
            return None

        return ResultRecord(
            title=title,
            author=author,
            recommendation_count=count,
            url=url,
            scraped_at=datetime.now(timezone.utc),
        )

    @staticmethod
    def _text(soup: BeautifulSoup, selector: str) -> str:
        node = soup.select_one(selector)
        return node.get_text(strip=True) if node is not None else ""

    def _recommendation_count(self, soup: BeautifulSoup) -> int:
        block = soup.select_one(self.selectors.recommendations)
        if block is None:
            return 0
        header = block.find("h4")
        header_text = header.get_text(strip=True) if header is not None else ""
        if not header_text.startswith(self._header_prefix):
            return 0
        # Every child element except the header is one recommendation.
        return max(0, len(block.find_all(recursive=False)) - 1)
