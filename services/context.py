"""Conversation context assembly for a new turn."""
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Union

from exceptions import InvalidArgumentError
from models.messages import MessageRole
from services.store import coerce_role


@dataclass(frozen=True)
class ContextMessage:
    """One ``{role, content}`` entry of the context sent to the model."""
    role: MessageRole
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role.value, "content": self.content}


MessageLike = Union[ContextMessage, Mapping[str, Any], Any]


def estimate_tokens(text: str) -> int:
    """Approx token count, ~4 chars per token."""
    if not text:
        return 0
    return max(1, len(text) // 4)


def _to_context(message: MessageLike) -> ContextMessage:
    if isinstance(message, ContextMessage):
        return message
    if isinstance(message, Mapping):
        role, content = message.get("role"), message.get("content")
    else:
        role, content = message.role, message.content
    return ContextMessage(role=coerce_role(role), content=content or "")


def _message_id(message: MessageLike) -> Optional[int]:
    if isinstance(message, Mapping):
        return message.get("id")
    return getattr(message, "id", None)


class ConversationAssembler:
    """
    Builds the ordered context for a model call from stored history and the
    pending user message.

    Without limits the full history is sent. ``max_context_messages`` caps the
    number of entries and ``max_context_tokens`` caps the estimated size; in
    both cases the newest messages are kept and the pending message always is.
    """

    def __init__(self, max_context_messages: Optional[int] = None, max_context_tokens: Optional[int] = None):
        if max_context_messages is not None and max_context_messages < 1:
            raise InvalidArgumentError("max_context_messages must be at least 1")
        if max_context_tokens is not None and max_context_tokens < 1:
            raise InvalidArgumentError("max_context_tokens must be at least 1")
        self.max_context_messages = max_context_messages
        self.max_context_tokens = max_context_tokens

    def assemble(self, history: Sequence[MessageLike], pending: MessageLike) -> List[ContextMessage]:
        """
        Return ``history + [pending]`` as context messages, oldest first.

        ``pending`` may already be persisted: when its id matches the last
        history entry it is not repeated.
        """
        prior = list(history)
        pending_id = _message_id(pending)
        if prior and pending_id is not None and _message_id(prior[-1]) == pending_id:
            prior = prior[:-1]

        context = [_to_context(m) for m in prior]
        context.append(_to_context(pending))
        return self._window(context)

    def _window(self, context: List[ContextMessage]) -> List[ContextMessage]:
        if self.max_context_messages is not None and len(context) > self.max_context_messages:
            context = context[-self.max_context_messages:]

        if self.max_context_tokens is not None:
            kept = [context[-1]]
            budget = self.max_context_tokens - estimate_tokens(context[-1].content)
            for message in reversed(context[:-1]):
                cost = estimate_tokens(message.content)
                if cost > budget:
                    break
                kept.append(message)
                budget -= cost
            context = list(reversed(kept))

        return context
