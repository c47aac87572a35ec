"""
Client-side state transitions for validated actions.

A `SetterRegistry` maps each named collection (`books`, `researchPapers`, `nodes`,
`edges`) to its custom setters. The registry is built once, frozen, and handed to an
`ActionApplier`, which turns `(collection, setterKey, args)` into the next collection
value without touching the input.
"""

import logging
import random
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, TypeAdapter, ValidationError

from .models import (
    AddBookAction,
    AddResearchPaperAction,
    Book,
    BookInput,
    BookPatch,
    Edge,
    NodeInput,
    NodePatch,
    PaperInput,
    PaperPatch,
    Position,
    ResearchPaper,
    RoadmapNode,
    SchemaViolation,
    TitleOnly,
    UpdateBookAction,
    UpdateResearchPaperAction,
    parse_action,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_COVER_URL = "https://via.placeholder.com/300x400/374151/FFFFFF?text=Loading..."
PLACEHOLDER_BOOK_LINK = "https://www.goodreads.com/book/show/placeholder"
PLACEHOLDER_PAPER_LINK = "https://arxiv.org/abs/placeholder"
LOADING = "Loading..."


def new_item_id() -> str:
    """Millisecond timestamp plus a random suffix, so ids created in the same tick still differ."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


class RegistryError(RuntimeError):
    """Invalid setter registration."""


@dataclass
class Transition:
    """Next collection value, plus whatever the setter hands back to the caller."""
    items: List[Any]
    value: Any = None


SetterFn = Callable[[List[Any], Any, Callable[[], str]], Transition]
CascadeFn = Callable[[List[Any], Any], List[Any]]


@dataclass(frozen=True)
class Setter:
    name: str
    description: str
    arg_type: Any
    fn: SetterFn
    arity: int = 1
    cascades: Tuple[Tuple[str, CascadeFn], ...] = ()


@dataclass
class _Collection:
    key: str
    item_model: type
    description: str
    setters: Dict[str, Setter] = field(default_factory=dict)


@lru_cache(maxsize=None)
def _adapter(tp) -> TypeAdapter:
    return TypeAdapter(tp)


def placeholder_book(title: str, book_id: str) -> Book:
    return Book(
        id=book_id,
        title=title,
        author=LOADING,
        image_url=PLACEHOLDER_COVER_URL,
        book_link=PLACEHOLDER_BOOK_LINK,
        tldr="AI is gathering information about this book...",
        genre=LOADING,
    )


def placeholder_paper(title: str, paper_id: str) -> ResearchPaper:
    return ResearchPaper(
        id=paper_id,
        title=title,
        authors=[LOADING],
        paper_link=PLACEHOLDER_PAPER_LINK,
        abstract="AI is gathering information about this paper...",
        journal=LOADING,
        year=datetime.now().year,
        doi=LOADING,
    )


def _patch_fields(patch: BaseModel) -> Dict[str, Any]:
    """Fields explicitly provided in `patch`, excluding the id and nulls."""
    return {
        name: getattr(patch, name)
        for name in patch.model_fields_set
        if name not in ("id", "type") and getattr(patch, name) is not None
    }


def _fresh_id(requested: Optional[str], existing: set, new_id: Callable[[], str]) -> str:
    if requested and requested not in existing:
        return requested
    if requested:
        logger.warning(f"Item id {requested!r} already present; assigning a new id")
    item_id = new_id()
    while item_id in existing:
        item_id = new_id()
    return item_id


# ============================
#          SETTERS
# ============================

def _add(item_model: type) -> SetterFn:
    def add(items, arg, new_id):
        data = {k: v for k, v in dict(arg).items() if v is not None}
        data["id"] = _fresh_id(data.get("id"), {item.id for item in items}, new_id)
        item = item_model(**data)
        return Transition([*items, item], item)
    return add


def _add_with_ai(make_placeholder: Callable[[str, str], Any]) -> SetterFn:
    def add_with_ai(items, arg: TitleOnly, new_id):
        placeholder = make_placeholder(arg.title, _fresh_id(None, {item.id for item in items}, new_id))
        return Transition([*items, placeholder], placeholder)
    return add_with_ai


def _remove(items, item_id: str, new_id):
    remaining = [item for item in items if item.id != item_id]
    if len(remaining) == len(items):
        logger.debug(f"Remove of unknown id {item_id!r} is a no-op")
    return Transition(remaining)


def _update(items, patch, new_id):
    changes = _patch_fields(patch)
    updated = None
    result = []
    for item in items:
        if item.id == patch.id:
            item = item.model_copy(update=changes)
            updated = item
        result.append(item)
    if updated is None:
        logger.debug(f"Update of unknown id {patch.id!r} is a no-op")
    return Transition(result, updated)


def _add_node(items, arg: NodeInput, new_id):
    position = arg.position or Position(x=random.random() * 400 + 100, y=random.random() * 300 + 100)
    node = RoadmapNode(
        id=_fresh_id(arg.id, {item.id for item in items}, new_id),
        position=position,
        data=arg.data,
    )
    return Transition([*items, node], node)


def _change_node(items, patch: NodePatch, new_id):
    data_changes = _patch_fields(patch.data)
    updated = None
    result = []
    for node in items:
        if node.id == patch.id:
            updates = {"data": node.data.model_copy(update=data_changes)}
            if patch.position is not None:
                updates["position"] = patch.position
            node = node.model_copy(update=updates)
            updated = node
        result.append(node)
    return Transition(result, updated)


def _drop_edges_touching(edges, node_id: str):
    return [edge for edge in edges if edge.source != node_id and edge.target != node_id]


# ============================
#          REGISTRY
# ============================

class SetterRegistry:
    """Collections and their custom setters. Read-only once frozen."""

    def __init__(self):
        self._collections: Dict[str, _Collection] = {}
        self._owners: Dict[str, str] = {}
        self._frozen = False

    def register_collection(self, key: str, item_model: type, description: str = "") -> None:
        if self._frozen:
            raise RegistryError("Registry is frozen")
        if key in self._collections:
            raise RegistryError(f"Collection {key!r} is already registered")
        self._collections[key] = _Collection(key, item_model, description)

    def register(self, state_key: str, setter: Setter) -> None:
        if self._frozen:
            raise RegistryError("Registry is frozen")
        if state_key not in self._collections:
            raise RegistryError(f"Unknown collection {state_key!r}")
        if setter.name in self._owners:
            raise RegistryError(f"Setter {setter.name!r} is already registered on {self._owners[setter.name]!r}")
        self._collections[state_key].setters[setter.name] = setter
        self._owners[setter.name] = state_key

    def freeze(self) -> "SetterRegistry":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def collections(self) -> List[str]:
        return list(self._collections)

    def setters(self, state_key: str) -> List[str]:
        return list(self._collection(state_key).setters)

    def item_model(self, state_key: str) -> type:
        return self._collection(state_key).item_model

    def _collection(self, state_key: str) -> _Collection:
        try:
            return self._collections[state_key]
        except KeyError:
            raise SchemaViolation("stateKey", f"Unknown collection {state_key!r}") from None

    def get(self, state_key: str, setter_key: str) -> Setter:
        collection = self._collection(state_key)
        try:
            return collection.setters[setter_key]
        except KeyError:
            raise SchemaViolation("setterKey", f"No setter {setter_key!r} registered on {state_key!r}") from None

    def find(self, setter_key: str) -> Tuple[str, Setter]:
        state_key = self._owners.get(setter_key)
        if state_key is None:
            raise SchemaViolation("setterKey", f"No setter {setter_key!r} registered")
        return state_key, self._collections[state_key].setters[setter_key]


def build_default_registry() -> SetterRegistry:
    """Register the library and roadmap collections with their setters, then freeze."""
    registry = SetterRegistry()

    registry.register_collection(
        "books", Book,
        "User's book library containing books with titles, authors, genres, and summaries",
    )
    registry.register("books", Setter("addBook", "Add a new book to the library", BookInput, _add(Book)))
    registry.register("books", Setter(
        "addBookWithAI", "Add a placeholder book that AI fills in later", TitleOnly, _add_with_ai(placeholder_book),
    ))
    registry.register("books", Setter("removeBook", "Remove a book from the library", str, _remove))
    registry.register("books", Setter("updateBook", "Update an existing book in the library", BookPatch, _update))

    registry.register_collection(
        "researchPapers", ResearchPaper,
        "User's research paper library containing papers with titles, authors, journals, and abstracts",
    )
    registry.register("researchPapers", Setter(
        "addResearchPaper", "Add a new research paper to the library", PaperInput, _add(ResearchPaper),
    ))
    registry.register("researchPapers", Setter(
        "addResearchPaperWithAI", "Add a placeholder paper that AI fills in later", TitleOnly,
        _add_with_ai(placeholder_paper),
    ))
    registry.register("researchPapers", Setter(
        "removeResearchPaper", "Remove a research paper from the library", str, _remove,
    ))
    registry.register("researchPapers", Setter(
        "updateResearchPaper", "Update an existing research paper in the library", PaperPatch, _update,
    ))

    registry.register_collection(
        "nodes", RoadmapNode, "Product roadmap features and bugs that can be managed through conversation",
    )
    registry.register("nodes", Setter("addNode", "Add a new feature or bug to the roadmap", NodeInput, _add_node))
    registry.register("nodes", Setter(
        "removeNode", "Remove a feature or bug from the roadmap", str, _remove,
        cascades=(("edges", _drop_edges_touching),),
    ))
    registry.register("nodes", Setter("changeNode", "Update an existing feature or bug", NodePatch, _change_node))

    registry.register_collection(
        "edges", Edge, "Connections between roadmap features showing dependencies and workflow order",
    )

    return registry.freeze()


# ============================
#          APPLIER
# ============================

class ActionApplier:
    """Pure state-transition engine over the collections in a registry."""

    def __init__(self, registry: SetterRegistry, id_factory: Callable[[], str] = new_item_id):
        self.registry = registry
        self.id_factory = id_factory

    def _items(self, state_key: str, collection: Sequence[Any]) -> List[Any]:
        item_model = self.registry.item_model(state_key)
        try:
            return _adapter(List[item_model]).validate_python(list(collection))
        except ValidationError as e:
            raise SchemaViolation.from_validation_error(e, prefix=state_key) from e

    def _resolve(self, setter_key: str, state_key: Optional[str]) -> Tuple[str, Setter]:
        if state_key is None:
            return self.registry.find(setter_key)
        return state_key, self.registry.get(state_key, setter_key)

    def _validated_arg(self, setter: Setter, args: Sequence[Any]) -> Any:
        if isinstance(args, (str, bytes)) or len(args) != setter.arity:
            raise SchemaViolation("args", f"{setter.name} takes exactly {setter.arity} argument(s)")
        try:
            return _adapter(setter.arg_type).validate_python(args[0])
        except ValidationError as e:
            raise SchemaViolation.from_validation_error(e, prefix="args.0") from e

    def transition(
        self,
        collection: Sequence[Any],
        setter_key: str,
        args: Sequence[Any],
        state_key: Optional[str] = None,
    ) -> Transition:
        state_key, setter = self._resolve(setter_key, state_key)
        arg = self._validated_arg(setter, args)
        return setter.fn(self._items(state_key, collection), arg, self.id_factory)

    def apply(
        self,
        collection: Sequence[Any],
        setter_key: str,
        args: Sequence[Any],
        state_key: Optional[str] = None,
    ) -> List[Any]:
        """Next value of `collection` after running `setter_key` with `args`."""
        return self.transition(collection, setter_key, args, state_key).items

    def apply_to_state(self, state: Mapping[str, Sequence[Any]], action: Any) -> Tuple[Dict[str, List[Any]], Any]:
        """Apply one action to a whole state mapping, including cross-collection cascades.

        Returns the new state (input untouched) and the setter's return value.
        """
        if not isinstance(action, BaseModel):
            action = parse_action(action)
        state_key, setter = self._resolve(action.setter_key, action.state_key)
        arg = self._validated_arg(setter, action.args)

        new_state = {key: list(items) for key, items in state.items()}
        result = setter.fn(self._items(state_key, state.get(state_key, [])), arg, self.id_factory)
        new_state[state_key] = result.items
        for target_key, cascade in setter.cascades:
            new_state[target_key] = cascade(self._items(target_key, state.get(target_key, [])), arg)
        return new_state, result.value


def as_enrichment_update(action: Any, placeholder_id: str):
    """Re-key a follow-up add/update so it fills in the placeholder instead of appending a duplicate."""
    if isinstance(action, (AddBookAction, UpdateBookAction)):
        fields = {k: v for k, v in dict(action.args[0]).items() if v is not None}
        fields["id"] = placeholder_id
        return UpdateBookAction(type="action", state_key="books", setter_key="updateBook", args=[BookPatch(**fields)])
    if isinstance(action, (AddResearchPaperAction, UpdateResearchPaperAction)):
        fields = {k: v for k, v in dict(action.args[0]).items() if v is not None}
        fields["id"] = placeholder_id
        return UpdateResearchPaperAction(
            type="action", state_key="researchPapers", setter_key="updateResearchPaper", args=[PaperPatch(**fields)],
        )
    return None
