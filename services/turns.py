"""Request/response cycle for one user turn."""
import asyncio
import enum
import os
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Tuple
import logging

from exceptions import ChatServiceError, InvalidArgumentError, NotFoundError, RemoteError, StorageError
from models.messages import Message, MessageRole
from models.threads import Thread
from services.context import ContextMessage, ConversationAssembler
from services.store import ChatStore
from services.threads import ThreadService, default_title
from services.titles import TitleGenerator

logger = logging.getLogger(__name__)

MODEL_TIMEOUT_SECONDS = float(os.getenv("MODEL_TIMEOUT_SECONDS", "60"))
TITLE_TIMEOUT_SECONDS = float(os.getenv("TITLE_TIMEOUT_SECONDS", "10"))

MODEL_ERROR_REPLY = "Error: Failed to connect to AI service."
STORAGE_ERROR_REPLY = "Error: Failed to save the AI response."


class ModelCall(Protocol):
    async def invoke(self, context: Sequence[ContextMessage]) -> str: ...


class TurnState(enum.Enum):
    IDLE = "idle"
    USER_MESSAGE_PERSISTING = "user_message_persisting"
    MODEL_INVOKING = "model_invoking"
    MODEL_REPLY_PERSISTING = "model_reply_persisting"
    FAILED_AFTER_USER_PERSISTED = "failed_after_user_persisted"


@dataclass
class TurnResult:
    """
    Outcome of a turn.

    On failure ``reply`` holds a synthetic error string that was shown to the
    caller but never stored; ``reply_message`` is then None.
    """
    thread: Thread
    user_message: Message
    reply: str
    reply_message: Optional[Message] = None
    state: TurnState = TurnState.IDLE

    @property
    def is_error(self) -> bool:
        return self.state is TurnState.FAILED_AFTER_USER_PERSISTED


class TurnOrchestrator:
    """Runs one user turn: persist, assemble, call the model, persist the reply."""

    def __init__(
        self,
        threads: ThreadService,
        store: ChatStore,
        model_call: ModelCall,
        assembler: Optional[ConversationAssembler] = None,
        title_generator: Optional[TitleGenerator] = None,
        model_timeout: float = MODEL_TIMEOUT_SECONDS,
        title_timeout: float = TITLE_TIMEOUT_SECONDS,
    ):
        self.threads = threads
        self.store = store
        self.model_call = model_call
        self.assembler = assembler or ConversationAssembler()
        self.title_generator = title_generator
        self.model_timeout = model_timeout
        self.title_timeout = title_timeout

    async def _seed_title(self, content: str) -> str:
        if self.title_generator is None:
            return default_title(content)
        try:
            return await asyncio.wait_for(self.title_generator.summarize(content), self.title_timeout)
        except (RemoteError, asyncio.TimeoutError) as e:
            logger.warning(f"Title generation failed, using message prefix: {e}")
            return default_title(content)

    async def _resolve_thread(self, thread_id: Optional[str], content: str) -> Tuple[Thread, bool]:
        """Return the thread for this turn and whether the turn created it."""
        thread = self.threads.find_thread(thread_id)
        if thread is not None:
            return thread, False
        return self.threads.ensure_thread(thread_id, await self._seed_title(content)), True

    async def _invoke_model(self, context: Sequence[ContextMessage]) -> str:
        try:
            return await asyncio.wait_for(self.model_call.invoke(context), self.model_timeout)
        except asyncio.TimeoutError as e:
            raise RemoteError(f"Model call timed out after {self.model_timeout}s") from e

    async def send_message(self, content: str, thread_id: Optional[str] = None) -> TurnResult:
        """
        Execute one turn.

        Storage failures while persisting the user message propagate. A thread
        started by the turn is removed again in that case. Once the
        user message is stored, model and reply-storage failures end the turn
        in FAILED_AFTER_USER_PERSISTED with a synthetic reply.
        """
        if not (content or "").strip():
            raise InvalidArgumentError("Message content must not be empty")

        thread, created = await self._resolve_thread(thread_id, content)

        logger.debug(f"Turn on {thread.id}: {TurnState.USER_MESSAGE_PERSISTING.value}")
        try:
            user_message = self.store.append_message(thread.id, MessageRole.USER, content)
        except Exception:
            if created:
                # drop the empty thread this turn started
                try:
                    self.threads.delete_thread(thread.id)
                except ChatServiceError as cleanup_error:
                    logger.error(f"Could not remove empty thread {thread.id}: {cleanup_error}")
            raise
        # the store applied the same bump in the append transaction
        thread.updated_at = max(thread.updated_at, user_message.created_at)

        history = self.store.list_messages(thread.id)
        context = self.assembler.assemble(history, user_message)

        logger.debug(f"Turn on {thread.id}: {TurnState.MODEL_INVOKING.value} with {len(context)} messages")
        try:
            reply = await self._invoke_model(context)
        except RemoteError as e:
            logger.error(f"Model call failed for thread {thread.id}: {e}")
            return TurnResult(
                thread=thread,
                user_message=user_message,
                reply=MODEL_ERROR_REPLY,
                state=TurnState.FAILED_AFTER_USER_PERSISTED,
            )

        logger.debug(f"Turn on {thread.id}: {TurnState.MODEL_REPLY_PERSISTING.value}")
        try:
            reply_message = self.store.append_message(thread.id, MessageRole.MODEL, reply)
        except (StorageError, NotFoundError) as e:
            logger.error(f"Could not store model reply for thread {thread.id}: {e}")
            return TurnResult(
                thread=thread,
                user_message=user_message,
                reply=STORAGE_ERROR_REPLY,
                state=TurnState.FAILED_AFTER_USER_PERSISTED,
            )

        thread.updated_at = max(thread.updated_at, reply_message.created_at)
        return TurnResult(
            thread=thread,
            user_message=user_message,
            reply=reply,
            reply_message=reply_message,
        )
