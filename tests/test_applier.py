import pytest

from libraryagent.applier import (
    LOADING,
    ActionApplier,
    RegistryError,
    Setter,
    SetterRegistry,
    Transition,
    as_enrichment_update,
    build_default_registry,
    new_item_id,
    placeholder_book,
)
from libraryagent.models import (
    Book,
    BookPatch,
    Edge,
    Position,
    RoadmapNode,
    FeatureNodeData,
    SchemaViolation,
    TitleOnly,
    UpdateBookAction,
    UpdateResearchPaperAction,
    parse_action,
)


@pytest.fixture
def books():
    """Fixture to provide a small book collection"""
    return [
        Book(id="1", title="Dune", author="Frank Herbert", image_url="u1", book_link="l1", tldr="Spice.", rating=4.0),
        Book(id="2", title="Emma", author="Jane Austen", image_url="u2", book_link="l2", tldr="Matchmaking."),
    ]


NEW_BOOK = {"title": "X", "imageUrl": "u", "bookLink": "l", "tldr": "t"}


def test_add_book_appends_with_fresh_id(applier, books):
    result = applier.apply(books, "addBook", [NEW_BOOK])

    assert len(result) == len(books) + 1
    assert result[:2] == books
    new = result[-1]
    assert new.id
    assert new.id not in {b.id for b in books}
    assert new.title == "X"
    assert new.type == "book"


def test_add_does_not_mutate_input(applier, books):
    snapshot = [b.model_copy() for b in books]
    applier.apply(books, "addBook", [NEW_BOOK])
    applier.apply(books, "removeBook", ["1"])
    assert books == snapshot


def test_add_with_empty_id_gets_fresh_id(applier, books):
    result = applier.apply(books, "addBook", [{**NEW_BOOK, "id": ""}])
    assert result[-1].id == "id-1"


def test_add_with_existing_id_never_overwrites(applier, books):
    result = applier.apply(books, "addBook", [{**NEW_BOOK, "id": "1"}])

    assert result[0] == books[0]
    assert result[-1].id != "1"
    assert len({b.id for b in result}) == 3


def test_add_keeps_requested_unique_id(applier, books):
    result = applier.apply(books, "addBook", [{**NEW_BOOK, "id": "custom"}])
    assert result[-1].id == "custom"


def test_add_then_remove_round_trips(applier, books):
    added = applier.apply(books, "addBook", [NEW_BOOK])
    new_id = added[-1].id

    result = applier.apply(added, "removeBook", [new_id])

    assert {b.id for b in result} == {b.id for b in books}


def test_update_merges_only_provided_fields(applier, books):
    result = applier.apply(books, "updateBook", [{"id": "1", "rating": 5}])

    updated = result[0]
    assert updated.rating == 5
    assert updated.model_dump(exclude={"rating"}) == books[0].model_dump(exclude={"rating"})
    assert result[1] == books[1]


def test_update_ignores_null_fields(applier, books):
    result = applier.apply(books, "updateBook", [{"id": "1", "author": None, "genre": "SF"}])
    assert result[0].author == "Frank Herbert"
    assert result[0].genre == "SF"


def test_update_cannot_change_type(applier, books):
    with pytest.raises(SchemaViolation) as exc:
        applier.apply(books, "updateBook", [{"id": "1", "type": "paper", "title": "Dune Messiah"}])
    assert exc.value.path == "args.0.type"

    result = applier.apply(books, "updateBook", [{"id": "1", "type": "book", "title": "Dune Messiah"}])
    assert result[0].type == "book"
    assert result[0].title == "Dune Messiah"


def test_unknown_patch_field_is_rejected(applier, books):
    with pytest.raises(SchemaViolation) as exc:
        applier.apply(books, "updateBook", [{"id": "1", "pages": 412}])
    assert exc.value.path == "args.0.pages"


def test_update_of_missing_id_is_a_noop(applier, books):
    assert applier.apply(books, "updateBook", [{"id": "missing", "rating": 1}]) == books


def test_remove_of_missing_id_is_a_noop(applier, books):
    assert applier.apply(books, "removeBook", ["nonexistent-id"]) == books


def test_collection_may_be_given_as_wire_dicts(applier, books):
    result = applier.apply([b.to_wire() for b in books], "removeBook", ["2"])
    assert result == [books[0]]


def test_add_book_with_ai_returns_placeholder(applier, books):
    transition = applier.transition(books, "addBookWithAI", [{"title": "1984"}])

    placeholder = transition.value
    assert transition.items[-1] == placeholder
    assert placeholder.title == "1984"
    assert placeholder.author == LOADING
    assert placeholder.rating is None


def test_add_paper_with_ai_returns_placeholder(applier):
    transition = applier.transition([], "addResearchPaperWithAI", [{"title": "Attention Is All You Need"}])

    assert transition.value.type == "paper"
    assert transition.value.authors == [LOADING]
    assert transition.items == [transition.value]


def test_add_research_paper(applier):
    result = applier.apply([], "addResearchPaper", [{
        "title": "Attention Is All You Need",
        "authors": ["Ashish Vaswani"],
        "paperLink": "https://arxiv.org/abs/1706.03762",
        "abstract": "Transformers.",
        "year": 2017,
    }])
    assert result[0].id == "id-1"
    assert result[0].year == 2017


def test_bad_argument_reports_path(applier, books):
    with pytest.raises(SchemaViolation) as exc:
        applier.apply(books, "addBook", [{"title": "No cover"}])
    assert exc.value.path.startswith("args.0.")


def test_wrong_arity_is_rejected(applier, books):
    with pytest.raises(SchemaViolation) as exc:
        applier.apply(books, "removeBook", ["1", "2"])
    assert exc.value.path == "args"


def test_unknown_setter_is_rejected(applier, books):
    with pytest.raises(SchemaViolation) as exc:
        applier.apply(books, "burnBook", ["1"])
    assert exc.value.path == "setterKey"


def test_setter_on_wrong_collection_is_rejected(applier, books):
    with pytest.raises(SchemaViolation) as exc:
        applier.apply(books, "removeResearchPaper", ["1"], state_key="books")
    assert exc.value.path == "setterKey"


def test_add_node_fills_defaults(applier):
    result = applier.apply([], "addNode", [{"data": {"title": "Dark mode", "description": "Theme toggle"}}])

    node = result[0]
    assert node.type == "featureNode"
    assert node.data.status == "planned"
    assert node.data.upvotes == 0
    assert node.position is not None


def test_change_node_merges_data(applier):
    nodes = [RoadmapNode(
        id="n1",
        position=Position(x=1, y=2),
        data=FeatureNodeData(title="Dark mode", description="Theme toggle", upvotes=3),
    )]

    result = applier.apply(nodes, "changeNode", [{"id": "n1", "data": {"status": "done"}}])

    assert result[0].data.status == "done"
    assert result[0].data.title == "Dark mode"
    assert result[0].data.upvotes == 3
    assert result[0].position == Position(x=1, y=2)


def test_remove_node_drops_touching_edges(applier):
    data = FeatureNodeData(title="t", description="d")
    state = {
        "nodes": [
            RoadmapNode(id="a", position=Position(x=0, y=0), data=data),
            RoadmapNode(id="b", position=Position(x=0, y=0), data=data),
            RoadmapNode(id="c", position=Position(x=0, y=0), data=data),
        ],
        "edges": [
            Edge(id="e1", source="a", target="b"),
            Edge(id="e2", source="b", target="c"),
            Edge(id="e3", source="a", target="c"),
        ],
    }
    action = parse_action({"type": "action", "stateKey": "nodes", "setterKey": "removeNode", "args": ["b"]})

    new_state, _ = applier.apply_to_state(state, action)

    assert [n.id for n in new_state["nodes"]] == ["a", "c"]
    assert [e.id for e in new_state["edges"]] == ["e3"]
    assert len(state["edges"]) == 3


def test_registry_rejects_duplicate_setter_names():
    registry = SetterRegistry()
    registry.register_collection("books", Book)
    registry.register_collection("shelf", Book)
    registry.register("books", Setter("removeBook", "", str, lambda items, arg, new_id: None))

    with pytest.raises(RegistryError):
        registry.register("shelf", Setter("removeBook", "", str, lambda items, arg, new_id: None))


def test_registry_rejects_unknown_collection():
    with pytest.raises(RegistryError):
        SetterRegistry().register("books", Setter("addBook", "", str, lambda items, arg, new_id: None))


def test_default_registry_is_frozen():
    registry = build_default_registry()

    assert registry.frozen
    assert registry.collections() == ["books", "researchPapers", "nodes", "edges"]
    assert registry.setters("edges") == []
    with pytest.raises(RegistryError):
        registry.register_collection("extra", Book)


def test_new_item_ids_are_unique():
    ids = {new_item_id() for _ in range(1000)}
    assert len(ids) == 1000


def test_enrichment_rekeys_add_to_placeholder_update():
    placeholder = placeholder_book("1984", "ph-1")
    follow_up = parse_action({
        "type": "action", "stateKey": "books", "setterKey": "addBook",
        "args": [{**NEW_BOOK, "title": "1984", "author": "George Orwell"}],
    })

    update = as_enrichment_update(follow_up, placeholder.id)

    assert isinstance(update, UpdateBookAction)
    assert update.args[0].id == "ph-1"
    assert update.args[0].author == "George Orwell"


def test_enrichment_update_fills_placeholder(applier):
    transition = applier.transition([], "addBookWithAI", [TitleOnly(title="1984")])
    follow_up = parse_action({
        "type": "action", "stateKey": "books", "setterKey": "addBook",
        "args": [{**NEW_BOOK, "id": "other", "title": "1984", "author": "George Orwell", "genre": "Dystopian"}],
    })

    update = as_enrichment_update(follow_up, transition.value.id)
    result = applier.apply(transition.items, update.setter_key, update.args)

    assert len(result) == 1
    assert result[0].id == transition.value.id
    assert result[0].author == "George Orwell"
    assert result[0].genre == "Dystopian"


def test_enrichment_rekeys_paper_update():
    follow_up = parse_action({
        "type": "action", "stateKey": "researchPapers", "setterKey": "updateResearchPaper",
        "args": [{"id": "whatever", "journal": "NeurIPS"}],
    })
    update = as_enrichment_update(follow_up, "ph-2")
    assert isinstance(update, UpdateResearchPaperAction)
    assert update.args[0].id == "ph-2"


def test_enrichment_ignores_unrelated_actions():
    remove = parse_action({"type": "action", "stateKey": "books", "setterKey": "removeBook", "args": ["1"]})
    assert as_enrichment_update(remove, "ph-1") is None


def test_applier_accepts_a_custom_registry():
    registry = SetterRegistry()
    registry.register_collection("books", Book)
    registry.register("books", Setter(
        "clearBooks", "Remove every book", BookPatch,
        lambda items, arg, new_id: Transition([]),
    ))
    applier = ActionApplier(registry.freeze())

    assert applier.apply([], "clearBooks", [{"id": "x"}]) == []
