"""Thread service for lifecycle operations."""
from typing import Optional, List
from uuid import uuid4
import logging

from exceptions import InvalidArgumentError, NotFoundError
from models.messages import Message
from models.threads import Thread
from services.store import ChatStore

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Conversation"
TITLE_MAX_LENGTH = 255
SEED_TITLE_LENGTH = 30


def default_title(text: str) -> str:
    """Title derived from the first user message."""
    text = (text or "").strip()
    if not text:
        return DEFAULT_TITLE
    return text[:SEED_TITLE_LENGTH] + ("..." if len(text) > SEED_TITLE_LENGTH else "")


def new_thread_id() -> str:
    return uuid4().hex


class ThreadService:
    """Service class for thread lifecycle operations."""
    
    def __init__(self, store: ChatStore):
        self.store = store

    @staticmethod
    def _clean_title(title: Optional[str]) -> str:
        title = (title or "").strip()
        if not title:
            raise InvalidArgumentError("Title must not be empty")
        if len(title) > TITLE_MAX_LENGTH:
            raise InvalidArgumentError(f"Title must be at most {TITLE_MAX_LENGTH} characters")
        return title

    def find_thread(self, thread_id: Optional[str]) -> Optional[Thread]:
        """Resolve a thread id, returning None if it is missing or unknown."""
        if not thread_id:
            return None
        try:
            return self.store.get_thread(thread_id)
        except NotFoundError:
            return None

    def ensure_thread(self, existing_id: Optional[str], seed_title: Optional[str]) -> Thread:
        """Return the existing thread, or create a fresh one titled ``seed_title``."""
        thread = self.find_thread(existing_id)
        if thread is not None:
            return thread
        if existing_id:
            logger.info(f"Thread {existing_id} not found, starting a new one")
        title = (seed_title or "").strip()[:TITLE_MAX_LENGTH] or DEFAULT_TITLE
        return self.store.create_thread(new_thread_id(), title)

    def create_thread(self, thread_id: Optional[str] = None, title: Optional[str] = None) -> Thread:
        """Explicit "new chat" action."""
        title = DEFAULT_TITLE if title is None or not title.strip() else self._clean_title(title)
        return self.store.create_thread(thread_id or new_thread_id(), title)
    
    def get_thread(self, thread_id: str) -> Thread:
        """Retrieve a thread by ID."""
        return self.store.get_thread(thread_id)
    
    def list_threads(self) -> List[Thread]:
        """Retrieve all threads, most recently active first."""
        return self.store.list_threads()

    def list_messages(self, thread_id: str) -> List[Message]:
        """Retrieve the messages of a thread, oldest first."""
        return self.store.list_messages(thread_id)
    
    def rename_thread(self, thread_id: str, title: str) -> Thread:
        """Rename a thread; blank titles are rejected."""
        return self.store.rename_thread(thread_id, self._clean_title(title))
    
    def delete_thread(self, thread_id: str) -> None:
        """Delete a thread and its messages. Raises NotFoundError if absent."""
        self.store.delete_thread(thread_id)
