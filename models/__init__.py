from .threads import Thread, Base, utcnow
from .messages import Message, MessageRole

__all__ = ["Thread", "Message", "MessageRole", "Base", "utcnow"]
