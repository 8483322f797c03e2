"""Durable persistence for threads and messages."""
from contextlib import contextmanager
from typing import Iterator, List, Union
import logging
import threading

from sqlalchemy import desc, func, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from exceptions import DuplicateIdError, InvalidArgumentError, NotFoundError, StorageError
from models.messages import Message, MessageRole
from models.threads import Thread, utcnow

logger = logging.getLogger(__name__)


def coerce_role(role: Union[str, MessageRole]) -> MessageRole:
    """Validate a role against the closed ``user | model`` set."""
    try:
        return MessageRole(role)
    except ValueError:
        raise InvalidArgumentError(f"Invalid message role: {role!r}") from None


class ChatStore:
    """
    Store for threads and messages on top of a SQLAlchemy session factory.

    Each public method runs in its own transaction. Objects returned are
    detached snapshots and safe to read after the call returns.
    Writes to the same thread are serialised with a per-thread lock; lock
    entries live as long as the store so a recreated id shares the same lock.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._locks: dict = {}
        self._locks_guard = threading.Lock()

    def _thread_lock(self, thread_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(thread_id)
            if lock is None:
                lock = self._locks[thread_id] = threading.Lock()
            return lock

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Storage failure: {e}")
            raise StorageError(str(e)) from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    @staticmethod
    def _require_thread(db: Session, thread_id: str) -> Thread:
        thread = db.get(Thread, thread_id)
        if thread is None:
            raise NotFoundError(f"Thread {thread_id} not found")
        return thread

    def ping(self) -> None:
        """Round-trip to the database; raises StorageError when unreachable."""
        with self._session() as db:
            db.execute(text("SELECT 1"))

    def create_thread(self, thread_id: str, title: str) -> Thread:
        """Insert a new thread. Fails with DuplicateIdError if the id is taken."""
        with self._session() as db:
            if db.get(Thread, thread_id) is not None:
                raise DuplicateIdError(f"Thread {thread_id} already exists")
            now = utcnow()
            thread = Thread(id=thread_id, title=title, created_at=now, updated_at=now)
            db.add(thread)
            try:
                db.flush()
            except IntegrityError as e:
                # lost a race with a concurrent insert of the same id
                raise DuplicateIdError(f"Thread {thread_id} already exists") from e
        logger.info(f"Created thread {thread_id}")
        return thread

    def list_threads(self) -> List[Thread]:
        """All threads, most recently active first."""
        with self._session() as db:
            return list(db.scalars(
                select(Thread).order_by(desc(Thread.updated_at), desc(Thread.created_at))
            ))

    def get_thread(self, thread_id: str) -> Thread:
        """Fetch one thread. Raises NotFoundError if absent."""
        with self._session() as db:
            return self._require_thread(db, thread_id)

    def rename_thread(self, thread_id: str, title: str) -> Thread:
        """Set a thread's title without touching its recency."""
        with self._thread_lock(thread_id), self._session() as db:
            thread = self._require_thread(db, thread_id)
            thread.title = title
        return thread

    def delete_thread(self, thread_id: str) -> None:
        """Delete a thread and every message it owns in one transaction."""
        with self._thread_lock(thread_id), self._session() as db:
            thread = self._require_thread(db, thread_id)
            deleted = db.query(Message).filter(Message.thread_id == thread_id).delete(
                synchronize_session=False
            )
            db.delete(thread)
        logger.info(f"Deleted thread {thread_id} with {deleted} messages")

    def append_message(self, thread_id: str, role: Union[str, MessageRole], content: str) -> Message:
        """
        Append a message to a thread.

        The thread's ``updated_at`` is bumped in the same transaction, so a
        stored message never has a thread whose recency is stale.
        """
        role = coerce_role(role)
        if content is None:
            raise InvalidArgumentError("Message content is required")
        with self._thread_lock(thread_id), self._session() as db:
            thread = self._require_thread(db, thread_id)
            now = utcnow()
            message = Message(thread_id=thread_id, role=role, content=content, created_at=now)
            db.add(message)
            thread.updated_at = max(thread.updated_at, now)
            db.flush()
        logger.debug(f"Appended {role.value} message {message.id} to thread {thread_id}")
        return message

    def list_messages(self, thread_id: str) -> List[Message]:
        """Messages of a thread in persistence order."""
        with self._session() as db:
            self._require_thread(db, thread_id)
            return list(db.scalars(
                select(Message).where(Message.thread_id == thread_id).order_by(Message.id)
            ))

    def count_messages(self, thread_id: str) -> int:
        """Number of messages stored for a thread."""
        with self._session() as db:
            self._require_thread(db, thread_id)
            return db.scalar(
                select(func.count(Message.id)).where(Message.thread_id == thread_id)
            )
