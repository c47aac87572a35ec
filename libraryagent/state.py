from typing import Any, Dict, List, Optional
from .applier import ActionApplier, build_default_registry
from .models import Book, ResearchPaper
import logging

logger = logging.getLogger(__name__)

DEMO_BOOKS = [
    Book(
        id="1",
        title="The Pragmatic Programmer",
        author="Andrew Hunt and David Thomas",
        image_url="https://covers.openlibrary.org/b/id/8091016-L.jpg",
        book_link="https://www.goodreads.com/book/show/4099.The_Pragmatic_Programmer",
        tldr="Practical advice on writing flexible, maintainable software and growing as a developer.",
        genre="Software Engineering",
        rating=4.3,
    ),
    Book(
        id="2",
        title="Dune",
        author="Frank Herbert",
        image_url="https://covers.openlibrary.org/b/id/11481354-L.jpg",
        book_link="https://www.goodreads.com/book/show/44767458-dune",
        tldr="A noble family's fight for control of a desert planet and its priceless spice.",
        genre="Science Fiction",
        rating=4.3,
    ),
]

DEMO_PAPERS = [
    ResearchPaper(
        id="p1",
        title="Attention Is All You Need",
        authors=["Ashish Vaswani", "Noam Shazeer", "Niki Parmar", "Jakob Uszkoreit"],
        paper_link="https://arxiv.org/abs/1706.03762",
        abstract="We propose the Transformer, a network architecture based solely on attention mechanisms.",
        journal="Advances in Neural Information Processing Systems",
        year=2017,
        doi="10.48550/arXiv.1706.03762",
    ),
]


class LibraryState:
    """In-memory collections of one UI session, mutated only through validated actions."""

    def __init__(self, applier: Optional[ActionApplier] = None, seed: bool = False):
        self.applier = applier or ActionApplier(build_default_registry())
        self._state: Dict[str, List[Any]] = {key: [] for key in self.applier.registry.collections()}
        if seed:
            self._state["books"] = list(DEMO_BOOKS)
            self._state["researchPapers"] = list(DEMO_PAPERS)

    def collection(self, key: str) -> List[Any]:
        """Copy of one collection, in insertion order."""
        return list(self._state[key])

    def apply(self, action: Any) -> Any:
        """Apply one action and return the setter's value (e.g. a placeholder record)."""
        self._state, value = self.applier.apply_to_state(self._state, action)
        logger.info(f"Applied {getattr(action, 'setter_key', None) or action.get('setterKey')} to library state")
        return value

    def snapshot(self) -> Dict[str, List[dict]]:
        """Wire form of every collection."""
        return {key: [item.to_wire() for item in items] for key, items in self._state.items()}
