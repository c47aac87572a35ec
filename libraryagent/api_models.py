from typing import Any, Dict, List, Optional
from pydantic import Field

from .models import CamelModel, ChatMessage


class ChatRequest(CamelModel):
    """Request body for /chat and /chat/stream."""
    prompt: str = Field(..., min_length=1)
    messages: Optional[List[ChatMessage]] = Field(
        default=None,
        description="Earlier turns of the conversation, oldest first. The prompt is the next user turn."
    )
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    system_prompt: Optional[str] = Field(
        default=None,
        description="Replaces the selected persona's instructions for this request only."
    )


class ChatResponse(CamelModel):
    """Assistant reply. `object` is the action to apply client-side, when there is one."""
    content: str
    object: Optional[Dict[str, Any]] = None
    usage: Optional[Dict[str, Any]] = None
