"""Short thread titles summarised by the chat model."""
from langchain_core.messages import HumanMessage

from services.model_call import ChatModelCall

TITLE_PROMPT = (
    'Generate a very short, 2-4 word title for a chat that starts with this message: "{message}". '
    "Return only the title text."
)
FALLBACK_TITLE = "New Chat"


class TitleGenerator:
    """Summarise the first message of a thread into a title."""

    def __init__(self, model_call: ChatModelCall):
        self.model_call = model_call

    async def summarize(self, first_message: str) -> str:
        text = await self.model_call.complete([HumanMessage(content=TITLE_PROMPT.format(message=first_message))])
        title = text.replace('"', "").replace("'", "").strip()
        return title or FALLBACK_TITLE
