import inspect
import logging
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from openai import AsyncOpenAI

from dal.conversation_dal import ConversationDAL
from routes.chat_route import router as chat_router
from routes.image_route import router as image_router
from routes.knowledge_route import router as knowledge_router
from routes.realtime_route import router as realtime_router
from routes.realtime_ws import router as realtime_ws_router
from routes.voice_route import router as voice_router
from services.chat.deadline import DeadlineGuard
from services.chat.deduplicator import RequestDeduplicator
from services.chat.knowledge_service import KnowledgeBaseService
from services.chat.run_driver import RunDriver
from services.chat.session_registry import InMemoryConversationStore, SessionRegistry, StampContextStore
from services.chat.tool_resolver import ToolCallResolver
from services.chat.turn_service import ChatTurnService
from services.chat.voice_service import VoiceChatService
from services.openai.assistant_provider import OpenAIAssistantProvider
from services.openai.chat_completion import ChatCompletionService
from services.openai.image_lookup import ImageSearchService, StampImageAnalyzer
from services.openai.prompts import knowledge_base_instructions, precise_voice_instructions
from services.openai.realtime_session import RealtimeSessionFactory
from services.openai.speech import SpeechSynthesizer, SpeechToText
from services.openai.vector_search import VectorStoreSearch
from services.stamp_catalog import StampCatalog
from utils.config import Settings
from utils.database_init import AsyncDatabaseInitializer
from utils.errors import AppError

load_dotenv()  # Load environment variables from .env file if present

REGISTRY_NAMESPACES = ("threads", "knowledge", "voice_search")


async def _conversation_stores(app: FastAPI, settings: Settings) -> Dict[str, Any]:
    """Return one ConversationStore per registry namespace."""
    if settings.conversation_store == "sqlite":
        db_initializer = AsyncDatabaseInitializer(settings.database_dir)
        # Deletes any existing DB and creates a fresh one.
        await db_initializer.ensure_database()
        app.state.db_initializer = db_initializer
        return {name: ConversationDAL(db_initializer, name) for name in REGISTRY_NAMESPACES}
    if settings.conversation_store != "memory":
        raise RuntimeError(
            f"CONVERSATION_STORE must be 'memory' or 'sqlite', got {settings.conversation_store!r}"
        )
    return {name: InMemoryConversationStore() for name in REGISTRY_NAMESPACES}


def _build_openai_client(settings: Settings) -> AsyncOpenAI:
    if not settings.openai_api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable is not set")
    try:
        return AsyncOpenAI(api_key=settings.openai_api_key)
    except Exception as exc:
        raise RuntimeError("Failed to initialize OpenAI Async client") from exc


async def _close_client(client: Any) -> None:
    aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
    if aclose is None:
        return
    try:
        if inspect.iscoroutinefunction(aclose):
            await aclose()
        else:
            result = aclose()
            if inspect.isawaitable(result):
                await result
    except Exception as exc:
        logging.warning("Failed to close OpenAI client cleanly: %s", exc)


async def configure_services(app: FastAPI, settings: Settings, overrides: Dict[str, Any]) -> None:
    """Build every service and attach it to ``app.state``.

    Any name in ``overrides`` replaces the service that would otherwise be
    built, and the services that depend on it are built around the override.
    """

    def pick(name: str, factory: Callable[[], Any]) -> Any:
        value = overrides[name] if name in overrides else factory()
        setattr(app.state, name, value)
        return value

    app.state.settings = settings
    app.state.background_tasks = set()

    client = pick("openai_client", lambda: _build_openai_client(settings))
    stores = await _conversation_stores(app, settings)

    provider = pick(
        "provider",
        lambda: OpenAIAssistantProvider(
            client, assistant_id=settings.openai_assistant_id, response_model=settings.chat_model
        ),
    )
    threads = pick("thread_registry", lambda: SessionRegistry(stores["threads"]))
    knowledge = pick("knowledge_registry", lambda: SessionRegistry(stores["knowledge"]))
    voice_search = pick("voice_search_registry", lambda: SessionRegistry(stores["voice_search"]))
    deduplicator = pick(
        "chat_deduplicator", lambda: RequestDeduplicator(max_age_seconds=settings.dedup_max_age_seconds)
    )
    contexts = pick(
        "stamp_contexts",
        lambda: StampContextStore(
            ttl_seconds=settings.stamp_context_ttl_seconds, max_items=settings.stamp_context_max
        ),
    )

    driver = RunDriver(
        provider,
        ToolCallResolver(provider),
        poll_interval_seconds=settings.run_poll_interval_seconds,
        max_attempts=settings.run_max_poll_attempts,
        keep_alive_every=settings.keep_alive_every,
        active_run_max_wait=settings.active_run_max_wait_attempts,
    )
    turns = pick(
        "turn_service",
        lambda: ChatTurnService(
            provider,
            threads,
            deduplicator,
            driver,
            DeadlineGuard(provider, budget_seconds=settings.deadline_seconds),
            stream_budget_seconds=settings.deadline_seconds,
            non_stream_budget_seconds=settings.non_stream_timeout_seconds,
            chunk_words=settings.chunk_words,
            chunk_delay_seconds=settings.chunk_delay_seconds,
        ),
    )
    completions = pick("completions", lambda: ChatCompletionService(client, model=settings.chat_model))
    pick(
        "voice_service",
        lambda: VoiceChatService(turns, completions, contexts, conversation_model=settings.voice_chat_model),
    )
    pick(
        "knowledge_service",
        lambda: KnowledgeBaseService(
            provider,
            knowledge,
            deduplicator,
            vector_store_id=settings.openai_vector_store_id,
            instructions=knowledge_base_instructions(),
            source="knowledge_base",
            success_message="Response generated successfully!",
        ),
    )
    pick(
        "voice_search_service",
        lambda: KnowledgeBaseService(
            provider,
            voice_search,
            deduplicator,
            vector_store_id=settings.openai_vector_store_id,
            instructions=precise_voice_instructions(),
            source="voice_vector_search",
            success_message="Voice search completed",
            clarify_lead="Which one do you mean?",
            max_output_tokens=600,
            subject="voice search",
            extra={"isVoiceResponse": True},
        ),
    )
    pick("speech_to_text", lambda: SpeechToText(client, model=settings.transcribe_model))
    pick("speech_synthesizer", lambda: SpeechSynthesizer(client, model=settings.tts_model))
    pick(
        "image_search",
        lambda: ImageSearchService(
            StampImageAnalyzer(client, model=settings.vision_model),
            StampCatalog(settings.stamp_catalog_path),
        ),
    )
    pick(
        "vector_search",
        lambda: VectorStoreSearch(client, vector_store_id=settings.openai_vector_store_id),
    )
    pick("realtime_sessions", lambda: RealtimeSessionFactory(client, model=settings.realtime_model))


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as ``{success, error, code}`` with the matching status."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logging.error("%s on %s: %s", exc.code, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        code = "internal_error" if exc.status_code >= 500 else "http_error"
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.detail, "code": code},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "Invalid request body",
                "code": "validation_error",
                "details": str(exc.errors()),
            },
        )


def create_app(settings: Optional[Settings] = None, overrides: Optional[Dict[str, Any]] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    `overrides` maps ``app.state`` names to ready-made services; tests use it
    to swap the OpenAI-backed services for in-process fakes.
    """
    overrides = dict(overrides or {})

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan manager to load settings, configure logging, and build the
        OpenAI client, conversation stores, and chat services on `app.state`.
        """
        resolved = settings or Settings.from_env()
        logging.basicConfig(level=resolved.log_level.upper())
        await configure_services(app, resolved, overrides)
        logging.info(
            "Stamp expert ready (assistant=%s, store=%s)",
            resolved.openai_assistant_id,
            resolved.conversation_store,
        )
        try:
            yield
        finally:
            for task in list(app.state.background_tasks):
                task.cancel()
            if "openai_client" not in overrides:
                await _close_client(app.state.openai_client)

    app = FastAPI(lifespan=lifespan)
    register_exception_handlers(app)

    @app.get("/health")
    async def health(request: Request):
        """
        Liveness check with the number of sessions each registry is tracking.
        """
        state = request.app.state
        return {
            "ok": True,
            "openai_available": getattr(state, "openai_client", None) is not None,
            "sessions": {
                "threads": await state.thread_registry.count(),
                "knowledge": await state.knowledge_registry.count(),
                "voice_search": await state.voice_search_registry.count(),
                "stamp_contexts": len(state.stamp_contexts),
            },
        }

    # Register application routers
    app.include_router(chat_router)
    app.include_router(knowledge_router)
    app.include_router(voice_router)
    app.include_router(image_router)
    app.include_router(realtime_router)
    app.include_router(realtime_ws_router)

    return app


app = create_app()
