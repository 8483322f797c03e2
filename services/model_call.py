"""Hosted chat model call used to answer a turn."""
import os
from typing import List, Optional, Sequence
import logging

from langchain.chat_models import init_chat_model
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from exceptions import RemoteError
from models.messages import MessageRole
from services.context import ContextMessage

logger = logging.getLogger(__name__)

CHAT_MODEL = os.getenv("CHAT_MODEL", "google_genai:gemini-3-flash-preview")
SYSTEM_INSTRUCTION = os.getenv(
    "SYSTEM_INSTRUCTION",
    "You are Lumina, a highly intelligent and helpful AI assistant. Provide clear, detailed, "
    "and accurate responses. When providing code, ensure it is well-formatted. You are designed "
    "to be easy to copy-paste into GitHub, so use clean Markdown structure.",
)
EMPTY_REPLY = "I'm sorry, I couldn't generate a response."


def to_lc_messages(context: Sequence[ContextMessage], system_prompt: Optional[str] = None) -> List[BaseMessage]:
    """Map context messages onto LangChain message types."""
    messages: List[BaseMessage] = []
    if system_prompt:
        messages.append(SystemMessage(content=system_prompt))
    for item in context:
        if item.role == MessageRole.USER:
            messages.append(HumanMessage(content=item.content))
        else:
            messages.append(AIMessage(content=item.content))
    return messages


def response_text(response: BaseMessage) -> str:
    """Plain text of a chat model response (content may be a list of parts)."""
    content = response.content
    if isinstance(content, str):
        return content
    parts = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


class ChatModelCall:
    """
    Text-in/text-out call to a hosted chat model.

    The LangChain model is built on first use so the service can start
    without provider credentials. Any failure is raised as RemoteError.
    """

    def __init__(
        self,
        model: Optional[BaseChatModel] = None,
        model_name: str = CHAT_MODEL,
        system_prompt: Optional[str] = SYSTEM_INSTRUCTION,
    ):
        self._model = model
        self.model_name = model_name
        self.system_prompt = system_prompt

    @property
    def model(self) -> BaseChatModel:
        if self._model is None:
            try:
                self._model = init_chat_model(self.model_name)
            except Exception as e:
                logger.error(f"Could not initialise chat model {self.model_name}: {e}")
                raise RemoteError(f"Chat model {self.model_name} is not available") from e
        return self._model

    async def complete(self, messages: List[BaseMessage]) -> str:
        """Send prepared LangChain messages and return the reply text."""
        model = self.model
        try:
            response = await model.ainvoke(messages)
        except Exception as e:
            logger.error(f"Chat model call failed: {e}")
            raise RemoteError(str(e)) from e
        return response_text(response).strip()

    async def invoke(self, context: Sequence[ContextMessage]) -> str:
        """Answer the conversation in ``context`` (oldest first)."""
        text = await self.complete(to_lc_messages(context, self.system_prompt))
        return text or EMPTY_REPLY
