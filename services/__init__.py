from .store import ChatStore
from .context import ConversationAssembler, ContextMessage
from .threads import ThreadService
from .model_call import ChatModelCall
from .titles import TitleGenerator
from .turns import TurnOrchestrator, TurnResult, TurnState

__all__ = ["ChatStore", "ConversationAssembler", "ContextMessage", "ThreadService",
           "ChatModelCall", "TitleGenerator", "TurnOrchestrator", "TurnResult", "TurnState"]
