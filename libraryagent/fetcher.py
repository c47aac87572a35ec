"""
arXiv metadata lookup.
Queries the arXiv export API and parses its Atom feed into ArxivPaper records.
Uses httpx for transport and BeautifulSoup (lxml XML parser) for the feed.
"""

import logging
import re
from typing import Optional

import httpx
from bs4 import BeautifulSoup

from .config import settings
from .metrics import CallMetrics
from .models import ArxivPaper, ArxivSearchResult

logger = logging.getLogger(__name__)

ARXIV_ABS_URL = "https://arxiv.org/abs/{arxiv_id}"


class ArxivLookupError(LookupError):
    """arXiv could not be queried or its response could not be understood.

    The underlying httpx or parsing error is chained as `__cause__`.
    """


def clean_text(text: Optional[str]) -> str:
    """Collapse runs of whitespace and newlines into single spaces."""
    return re.sub(r"\s+", " ", text).strip() if text else ""


def strip_version(arxiv_id: str) -> str:
    """`2310.11453v2` -> `2310.11453`."""
    return re.sub(r"v\d+$", "", arxiv_id.strip())


def _id_from_url(url: str) -> str:
    m = re.search(r"/abs/(.+)$", url)
    return m.group(1) if m else url.rstrip("/").split("/")[-1]


def _text(tag, name: str) -> str:
    child = tag.find(name)
    return clean_text(child.get_text()) if child else ""


def _int(feed, name: str) -> int:
    tag = feed.find(name)
    try:
        return int(tag.get_text().strip()) if tag else 0
    except ValueError:
        return 0


def _parse_entry(entry) -> ArxivPaper:
    arxiv_url = _text(entry, "id")
    categories = [c.get("term") for c in entry.find_all("category") if c.get("term")]

    doi = None
    pdf_url = None
    for link in entry.find_all("link"):
        title = link.get("title")
        href = link.get("href", "")
        if title == "doi" and "doi.org/" in href:
            doi = href.split("doi.org/", 1)[1]
        elif title == "pdf":
            pdf_url = href
    if not doi:
        doi = _text(entry, "doi") or None

    journal = _text(entry, "journal_ref") or (f"arXiv:{categories[0]}" if categories else None)

    authors = []
    for author in entry.find_all("author"):
        name = _text(author, "name")
        if name:
            authors.append(name)

    return ArxivPaper(
        id=_id_from_url(arxiv_url),
        title=_text(entry, "title"),
        authors=authors,
        abstract=_text(entry, "summary"),
        published=_text(entry, "published") or None,
        updated=_text(entry, "updated") or None,
        doi=doi,
        journal=journal,
        categories=categories,
        pdf_url=pdf_url or arxiv_url.replace("/abs/", "/pdf/"),
        arxiv_url=arxiv_url,
    )


def parse_feed(xml: str) -> ArxivSearchResult:
    """Parse an arXiv API Atom document.

    Raises:
        ArxivLookupError: the document is not an Atom feed, or arXiv reported an error entry.
    """
    soup = BeautifulSoup(xml, "xml")
    feed = soup.find("feed")
    if feed is None:
        raise ArxivLookupError("Failed to parse arXiv response: no Atom feed element")

    papers = []
    for entry in feed.find_all("entry"):
        entry_id = _text(entry, "id")
        # arXiv reports bad queries as a single entry whose id points at its error docs
        if "/api/errors" in entry_id:
            raise ArxivLookupError(f"arXiv API error: {_text(entry, 'summary') or entry_id}")
        papers.append(_parse_entry(entry))

    return ArxivSearchResult(
        papers=papers,
        total_results=_int(feed, "totalResults"),
        start_index=_int(feed, "startIndex"),
        items_per_page=_int(feed, "itemsPerPage"),
    )


class ArxivClient:
    """Thin async client for the arXiv query API."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        base_url: str = settings.arxiv_api_url,
        timeout: float = settings.arxiv_timeout,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True)

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def _query(self, params: dict) -> ArxivSearchResult:
        try:
            response = await self.client.get(self.base_url, params=params, timeout=self.timeout, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"arXiv request failed for {params}: {e}")
            raise ArxivLookupError(f"arXiv request failed: {e}") from e

        try:
            return parse_feed(response.text)
        except ArxivLookupError:
            raise
        except Exception as e:
            logger.error(f"Failed to parse arXiv response: {e}", exc_info=True)
            raise ArxivLookupError(f"Failed to parse arXiv response: {e}") from e

    @CallMetrics.track_call("arxiv.search")
    async def search_papers(self, query: str, max_results: int = 10) -> ArxivSearchResult:
        """Search arXiv, most relevant first."""
        params = {
            "search_query": query,
            "start": 0,
            "max_results": max_results,
            "sortBy": "relevance",
            "sortOrder": "descending",
        }
        result = await self._query(params)
        logger.info(f"arXiv search {query!r} returned {len(result.papers)} of {result.total_results} papers")
        return result

    @CallMetrics.track_call("arxiv.get_by_id")
    async def get_paper_by_id(self, arxiv_id: str) -> Optional[ArxivPaper]:
        """Fetch a single paper. Returns None when arXiv knows no such id."""
        clean_id = strip_version(arxiv_id)
        logger.info(f"Fetching arXiv paper with ID: {clean_id}")
        result = await self._query({"id_list": clean_id})
        return result.papers[0] if result.papers else None
