import logging
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence

import logfire

from .agent import PersonaResponder, ProviderError, ResponderOptions
from .agent_prompts import ARXIV_ID_HINT, BOOK_ENRICHMENT_PROMPT, PAPER_ENRICHMENT_PROMPT
from .api_models import ChatRequest, ChatResponse
from .applier import as_enrichment_update
from .models import ChatMessage, SchemaViolation
from .selector import PersonaId, find_arxiv_id, select_persona_for_history

logger = logging.getLogger(__name__)

ENRICHMENT = {
    "books": (PersonaId.BOOK_LIBRARIAN, BOOK_ENRICHMENT_PROMPT),
    "researchPapers": (PersonaId.PAPER_LIBRARIAN, PAPER_ENRICHMENT_PROMPT),
}


class ChatWorkflow:
    """Selector -> Responder for one chat submission. Holds no per-request state."""

    def __init__(
        self,
        responder: PersonaResponder,
        selector: Callable[[Sequence[ChatMessage]], PersonaId] = select_persona_for_history,
    ):
        self.responder = responder
        self.selector = selector

    def conversation(self, request: ChatRequest, persona: PersonaId) -> List[ChatMessage]:
        """Earlier turns, a lookup hint when the prompt names an arXiv id, then the prompt."""
        history = list(request.messages or [])
        arxiv_id = find_arxiv_id(request.prompt) if persona == PersonaId.PAPER_LIBRARIAN else None
        if arxiv_id:
            history.append(ChatMessage(role="system", content=ARXIV_ID_HINT.format(arxiv_id=arxiv_id)))
        history.append(ChatMessage(role="user", content=request.prompt))
        return history

    async def run(self, request: ChatRequest) -> ChatResponse:
        turns = [*(request.messages or []), ChatMessage(role="user", content=request.prompt)]
        persona = self.selector(turns)
        logfire.info("Routing chat to {persona}", persona=persona.value)

        reply = await self.responder.respond(
            persona,
            self.conversation(request, persona),
            ResponderOptions(
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                system_prompt=request.system_prompt,
            ),
        )
        envelope = reply.envelope
        return ChatResponse(
            content=envelope.content,
            object=envelope.action.to_wire() if envelope.action else None,
            usage=reply.usage,
        )

    async def stream(self, request: ChatRequest) -> AsyncIterator[Dict[str, Any]]:
        """Yield the begin stage, the response, then the complete stage. Errors propagate."""
        yield {"type": "stage_update", "status": "update_begin", "message": "Generating response..."}
        response = await self.run(request)
        yield response.to_wire()
        yield {"type": "stage_update", "status": "update_complete", "message": "Response generated"}

    async def enrich_placeholder(self, state_key: str, placeholder: Any) -> Optional[Any]:
        """
        Ask the matching persona for the full record behind a `*WithAI` placeholder.

        Returns an update action keyed by the placeholder id, or None when nothing usable came
        back. The placeholder then simply stays as it is.
        """
        if state_key not in ENRICHMENT:
            raise ValueError(f"No enrichment flow for collection {state_key!r}")
        persona, template = ENRICHMENT[state_key]

        try:
            reply = await self.responder.respond(
                persona, [ChatMessage(role="user", content=template.format(title=placeholder.title))],
            )
        except (SchemaViolation, ProviderError) as e:
            logfire.error("Enrichment of {item_id} failed: {error}", item_id=placeholder.id, error=str(e))
            return None

        action = reply.envelope.action
        update = as_enrichment_update(action, placeholder.id) if action is not None else None
        if update is None:
            logger.warning(f"Enrichment of {placeholder.id} returned no usable action")
        return update
