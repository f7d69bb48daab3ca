"""
FastAPI Server
Main API server for the Sales Agent conversation service.

Wires the ConversationService (store + cache) into the app state and mounts
the conversation routes.
"""

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from salesagent.config.logging_config import configure_logging, get_logger
from salesagent.config.settings import get_conversation_settings
from salesagent.database.session import check_db_connection, dispose_engine
from salesagent.routes.conversation_routes import router as conversation_router
from salesagent.services.conversation_service import ConversationService
from salesagent.services.factory import create_conversation_service

logger = get_logger(__name__)


def create_app(service: Optional[ConversationService] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        service: Pre-built ConversationService (tests). When omitted, one is
            created from environment settings.
    """
    owns_database = service is None
    service = service if service is not None else create_conversation_service()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await service.start()
        logger.info("🚀 Sales Agent API ready")
        try:
            yield
        finally:
            await service.stop()
            if owns_database:
                await dispose_engine()
            logger.info("👋 Sales Agent API shut down")

    app = FastAPI(
        title="Sales Agent Conversation API",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.conversation_service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(conversation_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        database_ok = await check_db_connection() if owns_database else True
        return {
            "status": "ok" if database_ok else "degraded",
            "database": database_ok,
        }

    return app


def main() -> None:
    """Run the API server with uvicorn."""
    configure_logging()
    settings = get_conversation_settings()
    uvicorn.run(create_app(), host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
