from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from dotenv import load_dotenv
import os
from typing import List, Optional
import logging

load_dotenv()

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"), format="[%(asctime)s] %(levelname)s %(name)s - %(message)s")
logger = logging.getLogger(__name__)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

# Local imports
import database
from dtos.chat_request import ChatRequest
from exceptions import (
    ChatServiceError, DuplicateIdError, InvalidArgumentError, NotFoundError, RemoteError, StorageError,
)
from models import Base
from schemas import (
    ThreadCreate, ThreadUpdate, ThreadResponse,
    MessageCreate, MessageResponse, TurnResponse,
)
from services import (
    ChatStore, ChatModelCall, ConversationAssembler, ThreadService, TitleGenerator, TurnOrchestrator, TurnResult,
)
from services.model_call import CHAT_MODEL
from sqlalchemy.engine import Engine


def _optional_int(name: str) -> Optional[int]:
    value = os.getenv(name, "").strip()
    return int(value) if value else None


MAX_CONTEXT_MESSAGES = _optional_int("MAX_CONTEXT_MESSAGES")
MAX_CONTEXT_TOKENS = _optional_int("MAX_CONTEXT_TOKENS")
TITLE_GENERATION_ENABLED = os.getenv("TITLE_GENERATION_ENABLED", "false").lower() in ("true", "1", "yes")

ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    DuplicateIdError: status.HTTP_409_CONFLICT,
    InvalidArgumentError: status.HTTP_400_BAD_REQUEST,
    StorageError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    RemoteError: status.HTTP_502_BAD_GATEWAY,
}


def get_thread_service(request: Request) -> ThreadService:
    return request.app.state.thread_service


def get_orchestrator(request: Request) -> TurnOrchestrator:
    return request.app.state.orchestrator


def _turn_response(result: TurnResult) -> TurnResponse:
    return TurnResponse(
        thread=ThreadResponse.model_validate(result.thread),
        user_message=MessageResponse.model_validate(result.user_message),
        reply=result.reply,
        reply_message=MessageResponse.model_validate(result.reply_message) if result.reply_message else None,
        error=result.is_error,
    )


router = APIRouter()


@router.get("/")
async def root():
    return {"message": "Hello World", "status": "running"}


@router.get("/health")
async def health_check():
    return {"status": "healthy", "service": "chat-threads"}


@router.get("/health/detailed")
async def detailed_health_check(request: Request):
    """Health check including the database."""
    health_status = {
        "status": "healthy",
        "service": "chat-threads",
        "checks": {}
    }
    
    try:
        request.app.state.store.ping()
        health_status["checks"]["database"] = {"status": "healthy"}
    except StorageError as e:
        health_status["checks"]["database"] = {"status": "unhealthy", "error": str(e)}
        health_status["status"] = "unhealthy"
    
    health_status["checks"]["model"] = {"status": "configured", "name": request.app.state.model_name}
    
    return health_status


# Thread management endpoints
@router.get("/api/threads", response_model=List[ThreadResponse])
async def list_threads(threads: ThreadService = Depends(get_thread_service)) -> List[ThreadResponse]:
    """List threads, most recently active first."""
    return [ThreadResponse.model_validate(thread) for thread in threads.list_threads()]


@router.post("/api/threads", response_model=ThreadResponse, status_code=status.HTTP_201_CREATED)
async def create_thread(
    thread: ThreadCreate,
    threads: ThreadService = Depends(get_thread_service)
) -> ThreadResponse:
    """Create a new conversation thread."""
    db_thread = threads.create_thread(thread_id=thread.id, title=thread.title)
    return ThreadResponse.model_validate(db_thread)


@router.get("/api/threads/{thread_id}", response_model=ThreadResponse)
async def get_thread(thread_id: str, threads: ThreadService = Depends(get_thread_service)) -> ThreadResponse:
    """Get a specific thread by ID."""
    return ThreadResponse.model_validate(threads.get_thread(thread_id))


@router.patch("/api/threads/{thread_id}", response_model=ThreadResponse)
async def rename_thread(
    thread_id: str,
    thread_update: ThreadUpdate,
    threads: ThreadService = Depends(get_thread_service)
) -> ThreadResponse:
    """Rename a thread."""
    return ThreadResponse.model_validate(threads.rename_thread(thread_id, thread_update.title))


@router.delete("/api/threads/{thread_id}")
async def delete_thread(thread_id: str, threads: ThreadService = Depends(get_thread_service)) -> dict:
    """Delete a thread and all of its messages."""
    threads.delete_thread(thread_id)
    return {"message": "Thread deleted successfully"}


@router.get("/api/threads/{thread_id}/messages", response_model=List[MessageResponse])
async def list_messages(
    thread_id: str,
    threads: ThreadService = Depends(get_thread_service)
) -> List[MessageResponse]:
    """Messages of a thread, oldest first."""
    return [MessageResponse.model_validate(m) for m in threads.list_messages(thread_id)]


@router.post("/api/threads/{thread_id}/messages", response_model=TurnResponse)
async def send_message(
    thread_id: str,
    body: MessageCreate,
    threads: ThreadService = Depends(get_thread_service),
    orchestrator: TurnOrchestrator = Depends(get_orchestrator)
) -> TurnResponse:
    """Send a user message on an existing thread and return the model reply."""
    threads.get_thread(thread_id)
    result = await orchestrator.send_message(body.content, thread_id=thread_id)
    return _turn_response(result)


@router.post("/api/chat", response_model=TurnResponse)
async def chat(req: ChatRequest, orchestrator: TurnOrchestrator = Depends(get_orchestrator)) -> TurnResponse:
    """Send a message, starting a new thread when needed."""
    result = await orchestrator.send_message(req.message, thread_id=req.thread_id)
    return _turn_response(result)


async def chat_service_error_handler(request: Request, exc: ChatServiceError) -> JSONResponse:
    code = next(
        (code for error_type, code in ERROR_STATUS.items() if isinstance(exc, error_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    if code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=code, content={"detail": str(exc)})


def create_app(
    engine: Optional[Engine] = None,
    model_call: Optional[ChatModelCall] = None,
    title_generator: Optional[TitleGenerator] = None,
    assembler: Optional[ConversationAssembler] = None,
) -> FastAPI:
    """Build the API; collaborators default to the environment configuration."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        bind = engine or database.engine
        Base.metadata.create_all(bind=bind)
        session_factory = database.SessionLocal if engine is None else database.build_session_factory(engine)
        
        store = ChatStore(session_factory)
        thread_service = ThreadService(store)
        chat_model = model_call or ChatModelCall()
        titles = title_generator
        if titles is None and TITLE_GENERATION_ENABLED and isinstance(chat_model, ChatModelCall):
            titles = TitleGenerator(chat_model)
        
        app.state.store = store
        app.state.thread_service = thread_service
        app.state.model_name = getattr(chat_model, "model_name", CHAT_MODEL)
        app.state.orchestrator = TurnOrchestrator(
            threads=thread_service,
            store=store,
            model_call=chat_model,
            assembler=assembler or ConversationAssembler(MAX_CONTEXT_MESSAGES, MAX_CONTEXT_TOKENS),
            title_generator=titles,
        )
        logger.info(f"Chat service ready (database={bind.url.render_as_string(hide_password=True)})")
        
        yield
        
        if engine is None:
            bind.dispose()
        logger.info("Chat service shut down")

    app = FastAPI(
        title="Chat Threads API",
        version="1.0.0",
        lifespan=lifespan
    )

    # CORS configuration
    origins = os.getenv("ALLOWED_ORIGINS", "*").split(",")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=3600
    )
    app.add_exception_handler(ChatServiceError, chat_service_error_handler)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
