# agent.py

from __future__ import annotations as _annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, is_dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import httpx
import logfire
import openai
from pydantic import ValidationError
from pydantic_ai import Agent
from pydantic_ai.exceptions import AgentRunError, ModelAPIError, ModelHTTPError, UnexpectedModelBehavior
from pydantic_ai.messages import ModelMessage, ModelRequest, ModelResponse, TextPart, UserPromptPart
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from .agent_prompts import BOOK_LIBRARIAN_PROMPT, PAPER_LIBRARIAN_PROMPT, ROADMAP_PROMPT, STRUCTURED_OUTPUT_PROMPT
from .agent_tools import Deps, find_arxiv_paper, find_book_cover, search_arxiv
from .config import settings
from .fetcher import ArxivClient
from .metrics import CallMetrics
from .models import ActionEnvelope, ChatMessage, RawActionEnvelope, SchemaViolation, parse_envelope
from .selector import PersonaId

logger = logging.getLogger("library_agent")

# Network-level failures worth a second attempt; everything else surfaces immediately
TRANSIENT_ERRORS = (asyncio.TimeoutError, TimeoutError, httpx.TransportError, openai.APIConnectionError)


def is_transient(error: BaseException) -> bool:
    """Connection-level failure, raw or wrapped by pydantic-ai. Status errors are never transient."""
    if isinstance(error, TRANSIENT_ERRORS):
        return True
    return isinstance(error, ModelAPIError) and not isinstance(error, ModelHTTPError)


class ProviderError(RuntimeError):
    """The completion call itself failed (network, auth, quota, timeout)."""


# ============================
#          PERSONAS
# ============================

@dataclass(frozen=True)
class Persona:
    id: PersonaId
    name: str
    instructions: str
    tools: Tuple[Callable[..., Any], ...] = ()


PERSONAS: Dict[PersonaId, Persona] = {
    PersonaId.BOOK_LIBRARIAN: Persona(
        PersonaId.BOOK_LIBRARIAN, "Book Library Agent", BOOK_LIBRARIAN_PROMPT, (find_book_cover,),
    ),
    PersonaId.PAPER_LIBRARIAN: Persona(
        PersonaId.PAPER_LIBRARIAN, "Research Paper Library Agent", PAPER_LIBRARIAN_PROMPT,
        (find_arxiv_paper, search_arxiv),
    ),
    PersonaId.GENERAL_ASSISTANT: Persona(
        PersonaId.GENERAL_ASSISTANT, "Product Roadmap Agent", ROADMAP_PROMPT,
    ),
}


@dataclass
class ResponderOptions:
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    # Replaces the persona instructions for this call only
    system_prompt: Optional[str] = None


@dataclass
class PersonaReply:
    persona: PersonaId
    envelope: ActionEnvelope
    usage: Optional[Dict[str, Any]] = None


# ============================
#     HELPER FUNCTIONS
# ============================

def _default_model():
    from pydantic_ai.models.openai import OpenAIChatModel
    from pydantic_ai.providers.openai import OpenAIProvider

    return OpenAIChatModel(
        settings.openai_model,
        provider=OpenAIProvider(api_key=settings.openai_api_key),
    )


def _split_history(history: Sequence[ChatMessage]) -> Tuple[str, List[ModelMessage], List[str]]:
    """Return (prompt, earlier turns, extra system instructions)."""
    turns = list(history)
    last_user = max((i for i, m in enumerate(turns) if m.role == "user"), default=None)
    if last_user is None:
        raise ValueError("Conversation has no user message")

    messages: List[ModelMessage] = []
    system_notes: List[str] = []
    for message in turns[:last_user]:
        if message.role == "system":
            system_notes.append(message.content)
        elif message.role == "user":
            messages.append(ModelRequest(parts=[UserPromptPart(content=message.content)]))
        else:
            messages.append(ModelResponse(parts=[TextPart(content=message.content)]))
    return turns[last_user].content, messages, system_notes


def _usage_dict(usage: Any) -> Optional[Dict[str, Any]]:
    if usage is None:
        return None
    if is_dataclass(usage):
        return {k: v for k, v in asdict(usage).items() if v}
    return None


def _violation_from(error: UnexpectedModelBehavior) -> SchemaViolation:
    cause = error.__cause__
    while cause is not None:
        if isinstance(cause, ValidationError):
            return SchemaViolation.from_validation_error(cause)
        cause = cause.__cause__
    return SchemaViolation("$", f"Provider output did not match the response schema: {error}")


# ============================
#       PERSONA RESPONDER
# ============================

class PersonaResponder:
    """Runs one persona against a conversation and returns a validated ActionEnvelope."""

    def __init__(self, model: Any = None, arxiv: Optional[ArxivClient] = None):
        self._model = model
        self.arxiv = arxiv or ArxivClient()

    @property
    def model(self):
        if self._model is None:
            self._model = _default_model()
        return self._model

    async def close(self) -> None:
        await self.arxiv.close()

    def build_agent(self, persona: Persona, options: ResponderOptions, system_notes: Sequence[str] = ()) -> Agent:
        instructions = options.system_prompt or persona.instructions
        instructions = "\n".join([instructions, *system_notes, STRUCTURED_OUTPUT_PROMPT])
        return Agent(
            self.model,
            name=persona.name,
            instructions=instructions,
            deps_type=Deps,
            output_type=RawActionEnvelope,
            output_retries=0,  # malformed output is reported, never repaired
            tools=list(persona.tools),
        )

    @retry(
        stop=stop_after_attempt(settings.provider_max_attempts),
        wait=wait_exponential(multiplier=0.5, max=4),
        retry=retry_if_exception(is_transient),
        reraise=True,
    )
    async def _call_provider(self, agent: Agent, prompt: str, messages: List[ModelMessage], model_settings):
        return await asyncio.wait_for(
            agent.run(
                prompt,
                message_history=messages or None,
                deps=Deps(arxiv=self.arxiv),
                model_settings=model_settings,
            ),
            timeout=settings.provider_timeout,
        )

    @CallMetrics.track_call("provider.respond")
    async def respond(
        self,
        persona_id: PersonaId,
        history: Sequence[ChatMessage],
        options: Optional[ResponderOptions] = None,
    ) -> PersonaReply:
        """
        Issue one structured completion for `persona_id`.

        Raises:
            SchemaViolation: the provider output does not match the ActionEnvelope schema.
            ProviderError: the completion call failed, including after the transient retry.
        """
        options = options or ResponderOptions()
        persona = PERSONAS[persona_id]
        prompt, messages, system_notes = _split_history(history)
        agent = self.build_agent(persona, options, system_notes)

        model_settings = {}
        temperature = options.temperature if options.temperature is not None else settings.default_temperature
        max_tokens = options.max_tokens if options.max_tokens is not None else settings.default_max_tokens
        if temperature is not None:
            model_settings["temperature"] = temperature
        if max_tokens is not None:
            model_settings["max_tokens"] = max_tokens

        logger.info(f"Using agent: {persona.name}")
        with logfire.span("persona {persona}", persona=persona_id.value):
            try:
                result = await self._call_provider(agent, prompt, messages, model_settings or None)
            except UnexpectedModelBehavior as e:
                logger.error(f"{persona.name} returned output outside the response schema: {e}")
                raise _violation_from(e) from e
            except (AgentRunError, openai.OpenAIError, httpx.HTTPError, *TRANSIENT_ERRORS) as e:
                if is_transient(e):
                    logger.error(f"Completion provider unreachable after {settings.provider_max_attempts} attempt(s): {e!r}")
                    raise ProviderError(f"Completion provider unreachable: {e!r}") from e
                logger.error(f"Completion call failed: {e}", exc_info=True)
                raise ProviderError(f"Completion call failed: {e}") from e

        try:
            envelope = parse_envelope(result.output)
        except SchemaViolation as e:
            logger.error(f"{persona.name} action failed validation at {e.path}: {e.detail}")
            raise

        logger.info(f"{persona.name} replied with action: {envelope.action.setter_key if envelope.action else None}")
        return PersonaReply(persona=persona_id, envelope=envelope, usage=_usage_dict(result.usage()))
