from .threads import ThreadCreate, ThreadUpdate, ThreadResponse
from .messages import MessageCreate, MessageResponse, TurnResponse

__all__ = ["ThreadCreate", "ThreadUpdate", "ThreadResponse",
           "MessageCreate", "MessageResponse", "TurnResponse"]
