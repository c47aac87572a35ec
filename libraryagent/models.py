from __future__ import annotations as _annotations

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
from pydantic_core import PydanticSerializationError, to_json
from pydantic.alias_generators import to_camel
from typing import Annotated, Any, List, Literal, Optional, Union


class CamelModel(BaseModel):
    """Base for every record that crosses the wire. Attributes are snake_case, JSON keys camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SchemaViolation(ValueError):
    """Untrusted data (usually provider output) does not match the domain schema.

    `path` is the dotted location of the first offending field, e.g. `action.args.0.title`.
    """

    def __init__(self, path: str, detail: str):
        self.path = path
        self.detail = detail
        super().__init__(f"{path}: {detail}" if path else detail)

    @classmethod
    def from_validation_error(cls, error: ValidationError, prefix: str = "") -> "SchemaViolation":
        first = error.errors()[0]
        # Discriminated unions insert the tag value into the location; drop it.
        loc = [part for part in first.get("loc", ()) if part not in SETTER_KEYS]
        if first.get("type") in ("union_tag_invalid", "union_tag_not_found"):
            loc.append("setterKey")
        parts = ([prefix] if prefix else []) + [str(part) for part in loc]
        return cls(".".join(parts), first.get("msg", str(error)))


# ============================
#        LIBRARY ITEMS
# ============================

class Book(CamelModel):
    """A book in the user's library."""
    id: str = Field(..., description="Unique identifier, assigned once at creation.")
    type: Literal["book"] = "book"
    title: str = Field(..., description="Book title.")
    image_url: str = Field(..., description="URL to the book cover image.")
    book_link: str = Field(..., description="URL to purchase or read the book.")
    tldr: str = Field(..., description="Brief summary of the book.")
    author: Optional[str] = Field(None, description="Author name.")
    genre: Optional[str] = Field(None, description="Genre or category.")
    rating: Optional[float] = Field(None, description="Rating, expected 1-5.")


class ResearchPaper(CamelModel):
    """A research paper in the user's library."""
    id: str = Field(..., description="Unique identifier, assigned once at creation.")
    type: Literal["paper"] = "paper"
    title: str = Field(..., description="Paper title.")
    authors: List[str] = Field(default_factory=list, description="Ordered list of author names.")
    paper_link: str = Field(..., description="URL to read the paper.")
    abstract: str = Field(..., description="Abstract or summary of the paper.")
    journal: Optional[str] = Field(None, description="Journal or conference name.")
    year: Optional[int] = Field(None, description="Publication year.")
    doi: Optional[str] = Field(None, description="Digital Object Identifier.")


LibraryItem = Annotated[Union[Book, ResearchPaper], Field(discriminator="type")]


# ============================
#        ROADMAP ITEMS
# ============================

NodeStatus = Literal["done", "planned", "backlog", "in progress"]


class FeatureComment(CamelModel):
    id: str
    author: str
    text: str


class FeatureNodeData(CamelModel):
    title: str
    description: str
    status: NodeStatus = "planned"
    node_type: Literal["feature"] = "feature"
    upvotes: int = 0
    comments: List[FeatureComment] = Field(default_factory=list)

    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, v):
        return v if v else "planned"

    @field_validator("upvotes", mode="before")
    @classmethod
    def default_upvotes(cls, v):
        return v if v is not None else 0


class Position(CamelModel):
    x: float
    y: float


class RoadmapNode(CamelModel):
    """A feature or bug on the product roadmap."""
    id: str
    type: Literal["featureNode"] = "featureNode"
    position: Position
    data: FeatureNodeData


class Edge(CamelModel):
    """A dependency between two roadmap nodes."""
    id: str
    source: str
    target: str
    label: Optional[str] = None


# ============================
#       SETTER ARGUMENTS
# ============================

class SetterArgs(CamelModel):
    """Setter arguments come from the provider: unknown keys are an error, not silently dropped."""
    model_config = ConfigDict(extra="forbid")


class BookInput(SetterArgs):
    """Argument of `addBook`. The id is optional; the applier assigns one when missing."""
    id: Optional[str] = None
    type: Optional[Literal["book"]] = None
    title: str
    image_url: str
    book_link: str
    tldr: str
    author: Optional[str] = None
    genre: Optional[str] = None
    rating: Optional[float] = None


class BookPatch(SetterArgs):
    """Argument of `updateBook`. Only the fields that are present get merged."""
    id: str
    type: Optional[Literal["book"]] = None
    title: Optional[str] = None
    image_url: Optional[str] = None
    book_link: Optional[str] = None
    tldr: Optional[str] = None
    author: Optional[str] = None
    genre: Optional[str] = None
    rating: Optional[float] = None


class PaperInput(SetterArgs):
    """Argument of `addResearchPaper`."""
    id: Optional[str] = None
    type: Optional[Literal["paper"]] = None
    title: str
    authors: List[str] = Field(default_factory=list)
    paper_link: str
    abstract: str
    journal: Optional[str] = None
    year: Optional[int] = None
    doi: Optional[str] = None


class PaperPatch(SetterArgs):
    """Argument of `updateResearchPaper`."""
    id: str
    type: Optional[Literal["paper"]] = None
    title: Optional[str] = None
    authors: Optional[List[str]] = None
    paper_link: Optional[str] = None
    abstract: Optional[str] = None
    journal: Optional[str] = None
    year: Optional[int] = None
    doi: Optional[str] = None


class TitleOnly(SetterArgs):
    """Argument of the `*WithAI` setters: the rest is filled in later."""
    title: str


class NodeInput(SetterArgs):
    id: Optional[str] = None
    position: Optional[Position] = None
    data: FeatureNodeData


class FeatureNodePatch(SetterArgs):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[NodeStatus] = None
    upvotes: Optional[int] = None
    comments: Optional[List[FeatureComment]] = None


class NodePatch(SetterArgs):
    id: str
    position: Optional[Position] = None
    data: FeatureNodePatch = Field(default_factory=FeatureNodePatch)


# ============================
#           ACTIONS
# ============================


class AddBookAction(CamelModel):
    type: Literal["action"]
    state_key: Literal["books"]
    setter_key: Literal["addBook"]
    args: List[BookInput] = Field(..., min_length=1, max_length=1)


class AddBookWithAIAction(CamelModel):
    type: Literal["action"]
    state_key: Literal["books"]
    setter_key: Literal["addBookWithAI"]
    args: List[TitleOnly] = Field(..., min_length=1, max_length=1)


class RemoveBookAction(CamelModel):
    type: Literal["action"]
    state_key: Literal["books"]
    setter_key: Literal["removeBook"]
    args: List[str] = Field(..., min_length=1, max_length=1)


class UpdateBookAction(CamelModel):
    type: Literal["action"]
    state_key: Literal["books"]
    setter_key: Literal["updateBook"]
    args: List[BookPatch] = Field(..., min_length=1, max_length=1)


class AddResearchPaperAction(CamelModel):
    type: Literal["action"]
    state_key: Literal["researchPapers"]
    setter_key: Literal["addResearchPaper"]
    args: List[PaperInput] = Field(..., min_length=1, max_length=1)


class AddResearchPaperWithAIAction(CamelModel):
    type: Literal["action"]
    state_key: Literal["researchPapers"]
    setter_key: Literal["addResearchPaperWithAI"]
    args: List[TitleOnly] = Field(..., min_length=1, max_length=1)


class RemoveResearchPaperAction(CamelModel):
    type: Literal["action"]
    state_key: Literal["researchPapers"]
    setter_key: Literal["removeResearchPaper"]
    args: List[str] = Field(..., min_length=1, max_length=1)


class UpdateResearchPaperAction(CamelModel):
    type: Literal["action"]
    state_key: Literal["researchPapers"]
    setter_key: Literal["updateResearchPaper"]
    args: List[PaperPatch] = Field(..., min_length=1, max_length=1)


class AddNodeAction(CamelModel):
    type: Literal["action"]
    state_key: Literal["nodes"]
    setter_key: Literal["addNode"]
    args: List[NodeInput] = Field(..., min_length=1, max_length=1)


class RemoveNodeAction(CamelModel):
    type: Literal["action"]
    state_key: Literal["nodes"]
    setter_key: Literal["removeNode"]
    args: List[str] = Field(..., min_length=1, max_length=1)


class ChangeNodeAction(CamelModel):
    type: Literal["action"]
    state_key: Literal["nodes"]
    setter_key: Literal["changeNode"]
    args: List[NodePatch] = Field(..., min_length=1, max_length=1)


Action = Annotated[
    Union[
        AddBookAction,
        AddBookWithAIAction,
        RemoveBookAction,
        UpdateBookAction,
        AddResearchPaperAction,
        AddResearchPaperWithAIAction,
        RemoveResearchPaperAction,
        UpdateResearchPaperAction,
        AddNodeAction,
        RemoveNodeAction,
        ChangeNodeAction,
    ],
    Field(discriminator="setter_key"),
]

SETTER_KEYS = frozenset({
    "addBook", "addBookWithAI", "removeBook", "updateBook",
    "addResearchPaper", "addResearchPaperWithAI", "removeResearchPaper", "updateResearchPaper",
    "addNode", "removeNode", "changeNode",
})

ActionAdapter = TypeAdapter(Action)


class ActionEnvelope(CamelModel):
    """Validated persona reply: a message, optionally accompanied by one mutation."""
    content: str = Field(..., description="Human-readable reply, always present.")
    action: Optional[Action] = Field(None, description="Mutation to apply on the client; absent means reply only.")


class RawAction(CamelModel):
    """Loose action shape the provider is constrained to emit. Checked strictly by `parse_envelope`."""
    type: Literal["action"] = Field(..., description="Always the literal string 'action'.")
    state_key: str = Field(..., description="Target collection: 'books', 'researchPapers' or 'nodes'.")
    setter_key: str = Field(..., description="Name of a registered setter, e.g. 'addBook' or 'removeResearchPaper'.")
    args: List[Any] = Field(..., description="Single-element argument list: the record to add or update, or the id to remove.")


class RawActionEnvelope(CamelModel):
    """Structured output required from every persona."""
    content: str = Field(..., description="Your human-readable response message.")
    action: Optional[RawAction] = Field(None, description="Include only when the user asked to change their library or roadmap.")


def _untrusted(data: Any) -> Any:
    """JSON text for untrusted input, so strict validation sees exactly what the provider sent."""
    if isinstance(data, (str, bytes)):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True, exclude_none=True)
    try:
        return to_json(data)
    except PydanticSerializationError as e:
        raise SchemaViolation("$", f"Not JSON-serializable: {e}") from e


def parse_envelope(data: Any) -> ActionEnvelope:
    """Validate untrusted provider output (dict, JSON text or raw model) into an ActionEnvelope.

    Validation is strict: "2017" is not a year and unknown argument keys are rejected.
    """
    try:
        return ActionEnvelope.model_validate_json(_untrusted(data), strict=True)
    except ValidationError as e:
        raise SchemaViolation.from_validation_error(e) from e


def parse_action(data: Any):
    """Validate a single untrusted action against the tagged union."""
    try:
        return ActionAdapter.validate_json(_untrusted(data), strict=True)
    except ValidationError as e:
        raise SchemaViolation.from_validation_error(e) from e


# ============================
#        CONVERSATION
# ============================

class ChatMessage(BaseModel):
    """One turn of a conversation."""
    role: Literal["system", "user", "assistant"]
    content: str


# ============================
#         ARXIV RECORDS
# ============================

class ArxivPaper(CamelModel):
    """Bibliographic record parsed from the arXiv Atom feed."""
    id: str
    title: str
    authors: List[str] = Field(default_factory=list)
    abstract: str = ""
    published: Optional[str] = None
    updated: Optional[str] = None
    doi: Optional[str] = None
    journal: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    pdf_url: Optional[str] = None
    arxiv_url: str

    @property
    def year(self) -> int | None:
        if self.published and len(self.published) >= 4 and self.published[:4].isdigit():
            return int(self.published[:4])
        return None


class ArxivSearchResult(CamelModel):
    papers: List[ArxivPaper] = Field(default_factory=list)
    total_results: int = 0
    start_index: int = 0
    items_per_page: int = 0
