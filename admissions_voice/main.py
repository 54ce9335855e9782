"""Admissions Voice - HTTP front door.

Exposes the turn pipeline, realtime session issuance and the conversation
archive over HTTP.
"""

from contextlib import asynccontextmanager
from typing import Any, List, Optional

import httpx
import structlog
from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from admissions_voice import __version__
from admissions_voice.archive import ArchiveService, LocalStorage
from admissions_voice.config import Settings, get_settings
from admissions_voice.exceptions import (
    ConfigurationError,
    InvalidInputError,
    PermanentUpstreamError,
    TransientExhaustedError,
    VoiceAssistantError,
)
from admissions_voice.pipeline import ChatMessage, TurnPipeline
from admissions_voice.session import (
    IceServer,
    SessionBroker,
    create_traversal_provider,
    default_ice_server,
)
from admissions_voice.upstream import RetryingCaller, UpstreamClient
from admissions_voice.upstream.openai import OpenAIOperations

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

HTTP_ERROR_CODES = {
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


# Models
class HealthResponse(BaseModel):
    status: str
    service: str
    version: str


class AnswerRequest(BaseModel):
    audio: Optional[str] = None  # Base64 or data URL
    history: List[ChatMessage] = Field(default_factory=list)


class AnswerResponse(BaseModel):
    ok: bool = True
    userText: str
    reply: str
    audio: str  # data:audio/mpeg;base64,...


class SessionResponse(BaseModel):
    client_secret: Any
    model: str
    voice: str
    ice_servers: List[IceServer]


class UploadResponse(BaseModel):
    audioFileId: Optional[str] = None
    transcriptFileId: str


def _log_error(exc: VoiceAssistantError, path: str) -> None:
    log = logger.bind(path=path, code=exc.code, status=exc.status_code)
    if isinstance(exc, PermanentUpstreamError):
        # Configuration or contract problem, needs attention
        log.error("Upstream rejected request", error=exc.message, **exc.details)
    elif isinstance(exc, TransientExhaustedError):
        log.warning("Upstream unavailable", error=exc.message, **exc.details)
    elif exc.status_code >= 500:
        log.error("Request failed", error=exc.message)
    else:
        log.info("Request rejected", error=exc.message)


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the application and its components.

    Args:
        settings: Service settings; defaults to the environment
        transport: Optional httpx transport for all upstream calls
    """
    settings = settings or get_settings()

    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.upstream_timeout_seconds),
        transport=transport,
    )
    upstream = UpstreamClient(http_client)
    caller = RetryingCaller(upstream, settings.retry_policy)
    operations = OpenAIOperations(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info(
            "Starting Admissions Voice",
            host=settings.host,
            port=settings.port,
            environment=settings.environment,
        )

        yield

        # Cleanup
        logger.info("Shutting down Admissions Voice")
        await http_client.aclose()

    app = FastAPI(
        title="Admissions Voice",
        description="Voice-driven lead qualification assistant",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.state.settings = settings
    app.state.http_client = http_client
    app.state.pipeline = TurnPipeline(
        caller,
        operations,
        max_audio_bytes=settings.max_audio_bytes,
    )
    app.state.broker = SessionBroker(
        caller,
        operations,
        default_server=default_ice_server(settings),
        traversal_provider=create_traversal_provider(upstream, settings),
        traversal_timeout=settings.traversal_timeout_seconds,
    )
    app.state.archive = ArchiveService(
        LocalStorage(base_path=settings.archive_dir),
        max_bytes=settings.archive_max_bytes,
    )

    @app.exception_handler(VoiceAssistantError)
    async def voice_assistant_error_handler(request: Request, exc: VoiceAssistantError):
        _log_error(exc, request.url.path)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = first.get("msg", "Invalid request")
        error = InvalidInputError(f"{location}: {message}" if location else message)
        _log_error(error, request.url.path)
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Routing errors (404, 405) in the same envelope
        code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": {"message": str(exc.detail), "code": code}},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception", path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": {"message": "An unexpected error occurred", "code": "INTERNAL_ERROR"}},
        )

    # Routes
    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            service=settings.service_name,
            version=__version__,
        )

    @app.post("/api/answer", response_model=AnswerResponse)
    async def answer(body: AnswerRequest, request: Request):
        """
        Run one conversational turn.

        Client posts ``{audio, history}``; the response carries the transcript,
        the reply text and the spoken reply as a data URL.
        """
        if not settings.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY not set")
        if not body.audio:
            raise InvalidInputError("Missing audio data URL")

        result = await request.app.state.pipeline.run(
            body.audio,
            body.history,
            is_disconnected=request.is_disconnected,
        )
        return AnswerResponse(
            userText=result.user_text,
            reply=result.reply,
            audio=result.audio_data_url,
        )

    @app.get(
        "/api/session",
        response_model=SessionResponse,
        response_model_exclude_none=True,
    )
    async def session(request: Request):
        """
        Create an ephemeral realtime session.

        Returns the client secret with STUN/TURN servers for WebRTC.
        """
        if not settings.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set")

        grant = await request.app.state.broker.issue()
        return SessionResponse(**grant.to_dict())

    @app.post("/api/upload", response_model=UploadResponse)
    async def upload(
        request: Request,
        file: Optional[UploadFile] = File(None, description="Recorded audio"),
        transcriptJson: str = Form("{}"),
    ):
        """Archive a recorded conversation and its transcript."""
        archive: ArchiveService = request.app.state.archive
        audio = b""
        mime_type = "audio/webm"
        if file is not None:
            # Read one byte past the cap so oversized files are detected
            audio = await file.read(archive.max_bytes + 1)
            mime_type = file.content_type or mime_type

        receipt = await archive.archive(audio, mime_type, transcriptJson)
        return UploadResponse(
            audioFileId=receipt.audio_file_id,
            transcriptFileId=receipt.transcript_file_id,
        )

    return app


app = create_app()


def run() -> None:
    """Run with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "admissions_voice.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    run()
