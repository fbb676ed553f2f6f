import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.core.settings import Settings, configure_logging, load_settings, log_event
from backend.core.validation import PipelineError
from backend.routes import blocks, export, pattern, session, upload

logger = logging.getLogger("caid_matcher.api")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="CAID Site Matcher API", version="0.1.0")
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PipelineError)
    async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
        log_event(
            logger,
            logging.WARNING if exc.status_code < 500 else logging.ERROR,
            "request_failed",
            method=request.method,
            path=request.url.path,
            status=exc.status_code,
            error_code=exc.error_code,
            message=exc.message,
        )
        body: dict[str, object] = {"detail": exc.message, "error_code": exc.error_code}
        if exc.detail:
            body["context"] = exc.detail
        return JSONResponse(status_code=exc.status_code, content=body)

    app.include_router(session.router, prefix="/api")
    app.include_router(upload.router, prefix="/api")
    app.include_router(pattern.router, prefix="/api")
    app.include_router(blocks.router, prefix="/api")
    app.include_router(export.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "CAID Site Matcher API",
                "docs": "/docs",
                "health": "/api/sessions",
            }
        )

    return app


app = create_app()
