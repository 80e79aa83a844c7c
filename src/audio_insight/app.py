import logging
import os
from typing import Optional

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import __version__
from .audio import AudioIngestor, IngestLimits
from .errors import (
    AudioTooLongError,
    ConfigurationError,
    ConversionError,
    PayloadTooLargeError,
    PipelineError,
    ValidationError,
)
from .logging_setup import configure_logging
from .pipeline import PipelineOrchestrator, new_request_id
from .schemas import ErrorResponse, HealthResponse, ProcessAudioResponse
from .settings import Settings, load_settings

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "internal error while processing the request"


def status_for_pipeline_error(exc: PipelineError) -> int:
    """Client-caused audio problems are 4xx, backend failures are 5xx."""

    if exc.timed_out:
        return 504
    if isinstance(exc.cause, AudioTooLongError):
        return 413
    if isinstance(exc.cause, ConversionError):
        return 422
    return 502


def _error_response(body: ErrorResponse, status_code: int) -> JSONResponse:
    return JSONResponse(body.model_dump(exclude_none=True), status_code=status_code)


def create_app(
    settings: Optional[Settings] = None,
    *,
    orchestrator: Optional[PipelineOrchestrator] = None,
) -> FastAPI:
    cfg = settings or load_settings()
    configure_logging(cfg.service)

    app = FastAPI(
        title="Audio Insight API",
        description="Transcribes an uploaded audio clip and analyses the transcript with a language model.",
        version=__version__,
    )
    app.state.settings = cfg
    app.state.pipeline = orchestrator or PipelineOrchestrator.from_settings(cfg)
    app.state.ingestor = AudioIngestor(limits=IngestLimits(max_bytes=cfg.audio.max_bytes))

    @app.exception_handler(ValidationError)
    async def _on_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        status = 413 if isinstance(exc, PayloadTooLargeError) else 400
        logger.info("api.request.rejected", extra={"path": request.url.path, "error": str(exc), "detail": exc.detail})
        return _error_response(ErrorResponse(error=str(exc)), status)

    @app.exception_handler(PipelineError)
    async def _on_pipeline_error(request: Request, exc: PipelineError) -> JSONResponse:
        body = ErrorResponse(error=exc.public_message, stage=exc.stage, transcription=exc.transcription)
        return _error_response(body, status_for_pipeline_error(exc))

    @app.exception_handler(RequestValidationError)
    async def _on_malformed_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = sorted({str(err.get("loc", ("?",))[-1]) for err in exc.errors()})
        logger.info("api.request.malformed", extra={"path": request.url.path, "fields": fields})
        return _error_response(ErrorResponse(error=f"malformed request field(s): {', '.join(fields)}"), 400)

    @app.exception_handler(ConfigurationError)
    async def _on_configuration_error(request: Request, exc: ConfigurationError) -> JSONResponse:
        logger.error("api.request.misconfigured", extra={"path": request.url.path, "error": str(exc), "detail": exc.detail})
        return _error_response(ErrorResponse(error=GENERIC_FAILURE), 500)

    @app.exception_handler(Exception)
    async def _on_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("api.request.failed", extra={"path": request.url.path})
        return _error_response(ErrorResponse(error=GENERIC_FAILURE), 500)

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        pipeline: PipelineOrchestrator = app.state.pipeline
        return HealthResponse(
            service=cfg.service.name,
            version=__version__,
            normalizer=pipeline.normalizer.name,
            asr_provider=pipeline.transcriber.provider.name,
            language=pipeline.transcriber.language,
            insight_backend=pipeline.generator.backend_name,
        )

    @app.post(
        "/process-audio",
        response_model=ProcessAudioResponse,
        responses={code: {"model": ErrorResponse} for code in (400, 413, 422, 500, 502, 504)},
    )
    async def process_audio(
        audio: Optional[UploadFile] = File(None),
        prompt: Optional[str] = Form(None),
        instruction: Optional[str] = Form(None),
    ) -> ProcessAudioResponse:
        request_id = new_request_id()
        instruction_text = prompt if prompt is not None else instruction
        if audio is None:
            logger.warning("api.process_audio.no_audio", extra={"request_id": request_id})
            raise ValidationError("audio file is required")

        try:
            asset = await app.state.ingestor.from_upload(
                file_reader=audio.read,
                content_type=audio.content_type or "application/octet-stream",
                filename=audio.filename,
            )
        finally:
            # Spooled uploads may have spilled to disk.
            await audio.close()

        result = await app.state.pipeline.run(asset, instruction_text, request_id=request_id)
        return ProcessAudioResponse.model_validate(result.to_payload())

    @app.on_event("shutdown")
    async def _on_shutdown() -> None:
        await app.state.pipeline.close()

    logger.info(
        "api.startup",
        extra={
            "normalizer": app.state.pipeline.normalizer.name,
            "asr_provider": app.state.pipeline.transcriber.provider.name,
            "insight_backend": app.state.pipeline.generator.backend_name,
        },
    )
    return app


app = create_app()


def main() -> None:
    import uvicorn

    uvicorn.run(
        "audio_insight.app:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=load_settings().service.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
