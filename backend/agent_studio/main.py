import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load environment variables BEFORE reading settings
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from agent_studio.core.config import get_settings
from agent_studio.api.routers import workflows

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Agent Workflow Studio API", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if settings.workflow_api_enabled:
        app.include_router(workflows.router)
    else:
        logger.warning("Workflow API disabled via WORKFLOW_API_ENABLED")

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    return app


app = create_app()
