"""
FastAPI boundary for the library assistant: synchronous /chat and SSE /chat/stream.
"""
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import logfire
import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from .agent import PersonaResponder
from .api_models import ChatRequest, ChatResponse
from .config import settings
from .fetcher import ArxivClient
from .models import SchemaViolation
from .workflow import ChatWorkflow

VERSION = "0.1.0"

# Shown to clients instead of validation internals
MALFORMED_RESPONSE = "The assistant returned a response that could not be understood. Please try again."

# Configure logging
logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

# Initialize Logfire
if not settings.logfire_token:
    logger.warning("LOGFIRE_TOKEN is not set; Logfire export is disabled.")
    logfire.configure(send_to_logfire=False, console=False)
else:
    try:
        logfire.configure(token=settings.logfire_token, service_name="library-assistant", service_version=VERSION)
        logfire.instrument_httpx()
        logfire.instrument_pydantic_ai()
        logger.info("Logfire initialized successfully")
    except Exception as e:
        logger.exception(f"Failed to initialize logfire: {e}")


def sse_event(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def get_workflow(request: Request) -> ChatWorkflow:
    return request.app.state.workflow


async def stream_events(chat_workflow: ChatWorkflow, body: ChatRequest, request: Request) -> AsyncIterator[str]:
    """SSE frames for one streamed chat turn. Nothing more is sent once the client has gone."""
    try:
        async for event in chat_workflow.stream(body):
            if await request.is_disconnected():
                logger.info("Client disconnected, abandoning chat stream")
                return
            yield sse_event(event)
    except SchemaViolation as e:
        logfire.error("Malformed assistant output at {path}: {detail}", path=e.path, detail=e.detail)
        yield sse_event({"type": "error", "error": MALFORMED_RESPONSE})
    except Exception as e:
        logger.error(f"Error in /chat/stream: {e}", exc_info=True)
        yield sse_event({"type": "error", "error": str(e)})


def create_app(workflow: Optional[ChatWorkflow] = None) -> FastAPI:
    """Build the API. A supplied `workflow` is used as is and never closed by the app."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if workflow is not None:
            app.state.workflow = workflow
            yield
            return

        arxiv = ArxivClient()
        app.state.workflow = ChatWorkflow(PersonaResponder(arxiv=arxiv))
        logger.info(f"Library assistant ready (model: {settings.openai_model})")
        try:
            yield
        finally:
            logger.info("Closing connections...")
            await arxiv.close()

    app = FastAPI(
        title="Library Assistant API",
        description="Chat assistant that manages a personal library of books and research papers",
        version=VERSION,
        lifespan=lifespan,
    )
    if workflow is not None:
        app.state.workflow = workflow

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/chat", response_model=ChatResponse, response_model_by_alias=True, response_model_exclude_none=True)
    async def chat(body: ChatRequest, chat_workflow: ChatWorkflow = Depends(get_workflow)):
        """Run one chat turn and return the reply with its optional action."""
        try:
            return await chat_workflow.run(body)
        except SchemaViolation as e:
            logfire.error("Malformed assistant output at {path}: {detail}", path=e.path, detail=e.detail)
            return JSONResponse(status_code=500, content={"error": MALFORMED_RESPONSE})
        except Exception as e:
            logger.error(f"Error in /chat: {e}", exc_info=True)
            return JSONResponse(status_code=500, content={"error": str(e)})

    @app.post("/chat/stream")
    async def chat_stream(body: ChatRequest, request: Request, chat_workflow: ChatWorkflow = Depends(get_workflow)):
        """Same as /chat, as server-sent events framed by stage updates."""
        return StreamingResponse(stream_events(chat_workflow, body, request), media_type="text/event-stream")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "version": VERSION}

    return app


app = create_app()


def run() -> None:
    uvicorn.run("libraryagent.main:app", host=settings.api_host, port=settings.api_port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
