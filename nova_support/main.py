"""
FastAPI Application Entry Point
===============================
Main application with lifecycle management, middleware, and route mounting.
"""

import logging
import random
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from nova_support.config import get_settings
from nova_support.core.exceptions import NovaSupportException
from nova_support.core.session import SupportSession
from nova_support.api.routes import conversation, health, reports, session, storefront, voice
from nova_support.db import build_repositories
from nova_support.logging.agent_logger import AgentLogger
from nova_support.realtime.groq_live import GroqLiveConnector
from nova_support.services.integrations import IntegrationService
from nova_support.services.llm import GroqChatModel
from nova_support.tools.registry import ToolRegistry

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def init_state(
    app: FastAPI,
    chat_model=None,
    live_connector=None,
    integrations: Optional[IntegrationService] = None,
    agent_logger: Optional[AgentLogger] = None,
    seed: Optional[int] = None
):
    """
    Build the catalog, tools and the support session onto `app.state`.

    Collaborators default to the Groq adapters and the simulated
    integration layer.
    """
    seed = settings.CATALOG_SEED if seed is None else seed
    products, customers = build_repositories(seed)

    registry = ToolRegistry().initialize()
    chat_model = chat_model or GroqChatModel(registry.get_tool_schemas())
    integrations = integrations or IntegrationService()

    app.state.products = products
    app.state.customers = customers
    app.state.tool_registry = registry
    app.state.chat_model = chat_model
    app.state.live_connector = live_connector or GroqLiveConnector()
    app.state.integrations = integrations
    app.state.agent_logger = agent_logger
    app.state.support = SupportSession(
        products,
        customers,
        chat_model,
        registry,
        integrations,
        agent_logger=agent_logger,
        rng=random.Random()
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info("Starting Nova Support Backend")
    logger.info("=" * 60)

    # ==================
    # STARTUP
    # ==================

    agent_logger = None
    if settings.ENABLE_AGENT_LOG:
        logger.info("Initializing agent logger...")
        agent_logger = AgentLogger(str(settings.AGENT_LOG_PATH))
        await agent_logger.initialize_log(settings.APP_VERSION)
        await agent_logger.log_system_event("Application starting", {
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT
        })

    logger.info("Building catalog, tools and support session...")
    init_state(app, agent_logger=agent_logger)

    if not settings.GROQ_API_KEY:
        logger.warning("GROQ_API_KEY is not set; chat and voice will report a configuration error")

    logger.info("=" * 60)
    logger.info("Nova Support Backend Ready!")
    logger.info(f"Server: http://{settings.HOST}:{settings.PORT}")
    logger.info(f"Docs: http://{settings.HOST}:{settings.PORT}/docs")
    logger.info("=" * 60)

    if agent_logger:
        await agent_logger.log_system_event("Application started successfully", {
            "host": settings.HOST,
            "port": settings.PORT,
            "products": len(app.state.products),
            "tools": ", ".join(app.state.tool_registry.names)
        })

    yield  # Application runs here

    # ==================
    # SHUTDOWN
    # ==================

    logger.info("Shutting down Nova Support Backend...")

    chat_model = getattr(app.state, "chat_model", None)
    if hasattr(chat_model, "cleanup"):
        await chat_model.cleanup()
    live_connector = getattr(app.state, "live_connector", None)
    if hasattr(live_connector, "cleanup"):
        await live_connector.cleanup()

    agent_logger = getattr(app.state, "agent_logger", None)
    if agent_logger:
        await agent_logger.log_system_event("Application shutting down", {})
        await agent_logger.close()

    logger.info("Shutdown complete.")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
    ## Nova Support

    Customer-support agent backend for the TechNova storefront.

    ### Features:
    - 💬 Text chat with tool calling (products, orders, cart, escalation)
    - 🎤 Live voice conversations via WebSocket, with barge-in
    - 🛍️ Product browser, cart and checkout
    - 📊 Analytics and integration status reports
    - 🌐 English and French

    ### Voice pipeline:
    ```
    Audio → VAD → Whisper (Groq) → LLM + tools (Groq) → PlayAI TTS (Groq) → Audio
    ```
    """,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# ==================
# MIDDLEWARE
# ==================

# CORS middleware for frontend access
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_timing_header(request: Request, call_next):
    """Add request timing information to response headers."""
    start_time = datetime.now()
    response = await call_next(request)
    process_time = (datetime.now() - start_time).total_seconds() * 1000
    response.headers["X-Process-Time-Ms"] = f"{process_time:.2f}"
    return response


# ==================
# EXCEPTION HANDLERS
# ==================

@app.exception_handler(NovaSupportException)
async def nova_support_exception_handler(request: Request, exc: NovaSupportException):
    """Handle custom Nova Support exceptions."""
    logger.error(f"NovaSupportException: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
            "details": str(exc) if settings.DEBUG else None
        }
    )


# ==================
# ROUTES
# ==================

app.include_router(health.router, tags=["Health"])
app.include_router(session.router, prefix="/api/v1/session", tags=["Session"])
app.include_router(conversation.router, prefix="/api/v1/conversation", tags=["Conversation"])
app.include_router(storefront.router, prefix="/api/v1", tags=["Storefront"])
app.include_router(reports.router, prefix="/api/v1/reports", tags=["Reports"])
app.include_router(voice.router, prefix="/api/v1/voice", tags=["Voice"])


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health"
    }
