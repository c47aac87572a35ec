import httpx
import pytest
from pydantic_ai.models.test import TestModel

from libraryagent.agent import PersonaResponder
from libraryagent.api_models import ChatRequest
from libraryagent.selector import PersonaId, select_persona
from libraryagent.state import DEMO_BOOKS, LibraryState
from libraryagent.workflow import ChatWorkflow

ADD_1984 = {
    "content": "I've added 1984 by George Orwell to your library.",
    "action": {
        "type": "action",
        "stateKey": "books",
        "setterKey": "addBook",
        "args": [{
            "title": "1984",
            "author": "George Orwell",
            "imageUrl": "https://images-na.ssl-images-amazon.com/images/S/compressed.photo.goodreads.com/books/1327942880i/5470.jpg",
            "bookLink": "https://www.goodreads.com/book/show/5470.1984",
            "tldr": "A dystopian novel about totalitarian surveillance.",
            "genre": "Dystopian Fiction",
            "rating": 4.2,
        }],
    },
}


def offline(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("offline", request=request)


def workflow_for(output: dict, arxiv_client) -> ChatWorkflow:
    responder = PersonaResponder(model=TestModel(custom_output_args=output, call_tools=[]), arxiv=arxiv_client(offline))
    return ChatWorkflow(responder)


def test_seeded_state_snapshot():
    state = LibraryState(seed=True)
    snapshot = state.snapshot()

    assert [b["id"] for b in snapshot["books"]] == [b.id for b in DEMO_BOOKS]
    assert snapshot["researchPapers"][0]["paperLink"] == "https://arxiv.org/abs/1706.03762"
    assert snapshot["nodes"] == []
    assert snapshot["edges"] == []


def test_collection_returns_a_copy():
    state = LibraryState(seed=True)
    state.collection("books").clear()
    assert len(state.collection("books")) == len(DEMO_BOOKS)


@pytest.mark.asyncio
async def test_add_1984_end_to_end(arxiv_client):
    prompt = "Please add the book 1984 to my library"
    assert select_persona(prompt) == PersonaId.BOOK_LIBRARIAN

    response = await workflow_for(ADD_1984, arxiv_client).run(ChatRequest(prompt=prompt))
    assert response.object["setterKey"] == "addBook"

    state = LibraryState()
    state.apply(response.object)

    books = state.collection("books")
    assert len(books) == 1
    assert books[0].title == "1984"
    assert books[0].author == "George Orwell"
    assert books[0].id


@pytest.mark.asyncio
async def test_recommendation_has_no_action(arxiv_client):
    prompt = "What books do you recommend?"
    assert select_persona(prompt) == PersonaId.BOOK_LIBRARIAN

    response = await workflow_for(
        {"content": "Try Dune by Frank Herbert or The Left Hand of Darkness."}, arxiv_client,
    ).run(ChatRequest(prompt=prompt))

    assert response.object is None
    assert response.content


@pytest.mark.asyncio
async def test_add_with_ai_then_enrich(arxiv_client):
    """The placeholder appears immediately and the follow-up fills it in place"""
    state = LibraryState()
    placeholder = state.apply({
        "type": "action", "stateKey": "books", "setterKey": "addBookWithAI", "args": [{"title": "1984"}],
    })
    assert state.collection("books")[0].author == "Loading..."

    update = await workflow_for(ADD_1984, arxiv_client).enrich_placeholder("books", placeholder)
    state.apply(update)

    books = state.collection("books")
    assert len(books) == 1
    assert books[0].id == placeholder.id
    assert books[0].author == "George Orwell"
    assert books[0].genre == "Dystopian Fiction"


@pytest.mark.asyncio
async def test_enrichment_without_action_leaves_placeholder(arxiv_client):
    state = LibraryState()
    placeholder = state.apply({
        "type": "action", "stateKey": "books", "setterKey": "addBookWithAI", "args": [{"title": "Unknown Title"}],
    })

    update = await workflow_for({"content": "I don't know that book."}, arxiv_client).enrich_placeholder(
        "books", placeholder,
    )

    assert update is None
    assert state.collection("books") == [placeholder]
