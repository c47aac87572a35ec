# agent_tools.py

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional
from urllib.parse import quote_plus

from pydantic_ai import RunContext

from .applier import new_item_id
from .fetcher import ARXIV_ABS_URL, ArxivClient, ArxivLookupError, strip_version
from .models import ArxivPaper, ResearchPaper

logger = logging.getLogger("library_agent_tools")


@dataclass
class Deps:
    arxiv: ArxivClient


KNOWN_COVERS = {
    "1984": "https://images-na.ssl-images-amazon.com/images/S/compressed.photo.goodreads.com/books/1327942880i/5470.jpg",
    "to kill a mockingbird": "https://images-na.ssl-images-amazon.com/images/S/compressed.photo.goodreads.com/books/1553383690i/2657.jpg",
    "the great gatsby": "https://images-na.ssl-images-amazon.com/images/S/compressed.photo.goodreads.com/books/1490528560i/4671.jpg",
    "pride and prejudice": "https://images-na.ssl-images-amazon.com/images/S/compressed.photo.goodreads.com/books/1320399351i/1885.jpg",
    "the hobbit": "https://images-na.ssl-images-amazon.com/images/S/compressed.photo.goodreads.com/books/1546071216i/5907.jpg",
    "the lord of the rings": "https://images-na.ssl-images-amazon.com/images/S/compressed.photo.goodreads.com/books/1566425108i/33.jpg",
    "the catcher in the rye": "https://images-na.ssl-images-amazon.com/images/S/compressed.photo.goodreads.com/books/1398034300i/5107.jpg",
    "brave new world": "https://images-na.ssl-images-amazon.com/images/S/compressed.photo.goodreads.com/books/1330938567i/5129.jpg",
}


def cover_for(title: str) -> Dict[str, str]:
    known = KNOWN_COVERS.get(title.strip().lower())
    if known:
        return {"imageUrl": known, "source": "Goodreads"}
    return {
        "imageUrl": f"https://via.placeholder.com/300x400/374151/FFFFFF?text={quote_plus(title)}",
        "source": "Placeholder",
    }


def paper_from_arxiv(paper: ArxivPaper) -> ResearchPaper:
    return ResearchPaper(
        id=new_item_id(),
        title=paper.title,
        authors=paper.authors,
        paper_link=ARXIV_ABS_URL.format(arxiv_id=strip_version(paper.id)),
        abstract=paper.abstract,
        journal=paper.journal,
        year=paper.year,
        doi=paper.doi,
    )


def placeholder_for_id(arxiv_id: str, reason: Optional[str] = None) -> ResearchPaper:
    """Stand-in record when arXiv has nothing (or cannot be reached) for `arxiv_id`."""
    abstract = f"Research paper from arXiv with ID {arxiv_id}"
    if reason:
        abstract += f". Details could not be retrieved ({reason})."
    return ResearchPaper(
        id=new_item_id(),
        title=f"arXiv:{arxiv_id}",
        authors=["Unknown Authors"],
        paper_link=ARXIV_ABS_URL.format(arxiv_id=arxiv_id),
        abstract=abstract,
        journal="arXiv",
        year=datetime.now().year,
        doi=f"10.48550/arXiv.{arxiv_id}",
    )


async def lookup_paper_or_placeholder(client: ArxivClient, arxiv_id: str) -> ResearchPaper:
    """Resolve an arXiv id to a ResearchPaper. Never raises on lookup failure."""
    clean_id = strip_version(arxiv_id)
    try:
        paper = await client.get_paper_by_id(clean_id)
    except ArxivLookupError as e:
        logger.warning(f"arXiv lookup for {clean_id} failed, using placeholder: {e}")
        return placeholder_for_id(clean_id, reason="arXiv lookup failed")
    if paper is None:
        logger.info(f"arXiv has no entry for {clean_id}, using placeholder")
        return placeholder_for_id(clean_id)
    return paper_from_arxiv(paper)


# ========== TOOLS ==========

async def find_book_cover(ctx: RunContext[Deps], title: str, author: Optional[str] = None) -> Dict[str, str]:
    """Find the best available cover image URL for a book.

    Args:
        title: Title of the book.
        author: Author of the book, if known.
    """
    return cover_for(title)


async def find_arxiv_paper(ctx: RunContext[Deps], arxiv_id: str) -> Dict[str, Any]:
    """Look up a research paper on arXiv by its identifier, e.g. 2310.11453.

    Args:
        arxiv_id: arXiv identifier, with or without a version suffix.
    """
    paper = await lookup_paper_or_placeholder(ctx.deps.arxiv, arxiv_id)
    return paper.to_wire()


async def search_arxiv(ctx: RunContext[Deps], query: str, max_results: int = 5) -> Dict[str, Any]:
    """Search arXiv by title or keywords.

    Args:
        query: arXiv search query, e.g. 'ti:"attention is all you need"'.
        max_results: Maximum number of papers to return.
    """
    try:
        result = await ctx.deps.arxiv.search_papers(query, max_results=max_results)
    except ArxivLookupError as e:
        logger.warning(f"arXiv search for {query!r} failed: {e}")
        return {"papers": [], "totalResults": 0, "error": "arXiv search is unavailable"}
    return {
        "papers": [paper_from_arxiv(p).to_wire() for p in result.papers],
        "totalResults": result.total_results,
    }
