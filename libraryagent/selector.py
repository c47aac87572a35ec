"""
Keyword routing of chat messages to agent personas.

The rules are coarse substring tests over the lowercased utterance. Paper signals
are checked first so that "add the research paper ..." never reaches the book
librarian through the generic "add" rule.
"""

import logging
import re
from enum import Enum
from typing import Iterable

from .models import ChatMessage

logger = logging.getLogger(__name__)


class PersonaId(str, Enum):
    PAPER_LIBRARIAN = "paperLibrarian"
    BOOK_LIBRARIAN = "bookLibrarian"
    GENERAL_ASSISTANT = "generalAssistant"


PAPER_KEYWORDS = ("research paper", "arxiv", "doi", "journal", "abstract", "academic")

# New-style (2310.11453, 2310.11453v2) and old-style (hep-th/9901001) identifiers
ARXIV_ID_PATTERN = re.compile(
    r"\b\d{4}\.\d{4,5}(?:v\d+)?\b|\b[a-z\-]+(?:\.[a-z]{2})?/\d{7}(?:v\d+)?\b"
)


def find_arxiv_id(text: str) -> str | None:
    """Return the first arXiv identifier in `text`, if any."""
    m = ARXIV_ID_PATTERN.search(text.lower())
    return m.group(0) if m else None


def _is_paper_query(content: str) -> bool:
    if any(keyword in content for keyword in PAPER_KEYWORDS):
        return True
    if ARXIV_ID_PATTERN.search(content):
        return True
    # "add this paper" carries no other paper keyword
    return "paper" in content and "book" not in content


def _is_book_query(content: str) -> bool:
    return (
        ("book" in content and "research paper" not in content and "arxiv" not in content)
        or ("add" in content and "paper" not in content and "research" not in content and "arxiv" not in content)
        or ("library" in content and "paper" not in content and "research" not in content and "arxiv" not in content)
        or "read" in content
        or "author" in content
        or "genre" in content
    )


def select_persona(utterance: str) -> PersonaId:
    """Choose the persona that answers `utterance`."""
    content = utterance.lower()
    if _is_paper_query(content):
        persona = PersonaId.PAPER_LIBRARIAN
    elif _is_book_query(content):
        persona = PersonaId.BOOK_LIBRARIAN
    else:
        persona = PersonaId.GENERAL_ASSISTANT
    logger.debug(f"Selected persona {persona.value} for utterance: {utterance[:80]!r}")
    return persona


def select_persona_for_history(messages: Iterable[ChatMessage]) -> PersonaId:
    """
    Route on the latest user turn. A follow-up with no signal of its own ("now remove it")
    stays with the persona of the user turn before it.
    """
    contents = [m.content for m in messages if m.role == "user"]
    if not contents:
        return PersonaId.GENERAL_ASSISTANT
    persona = select_persona(contents[-1])
    if persona == PersonaId.GENERAL_ASSISTANT and len(contents) > 1:
        persona = select_persona(contents[-2])
    return persona
