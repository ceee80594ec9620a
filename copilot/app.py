"""
FastAPI application for the server copilot.

This module defines the FastAPI application and wires the completion
session, the memory store and the tool registry into the routes.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from utils.config import get_api_keys, get_copilot_settings
from utils.prompts import get_server_system_instruction

from . import routes
from .errors import ConfigError
from .llm import create_session
from .storage import create_memory_store
from .tools.memory import build_server_registry

# Configure logging
logger = logging.getLogger(__name__)

REQUIRED_FIELDS = {("body", "message"), ("body", "userId")}

app = FastAPI()

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(routes.router)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_: Request, exc: RequestValidationError):
    """Answer malformed chat bodies in the same {"error"} shape as the routes."""
    errors = exc.errors()
    logger.error(f"Invalid chat request: {errors}")
    if any(tuple(error["loc"][:2]) in REQUIRED_FIELDS for error in errors):
        return JSONResponse(status_code=400, content={"error": "Missing message or userId"})
    detail = errors[0]["msg"] if errors else "malformed body"
    return JSONResponse(status_code=500, content={"error": f"Invalid request: {detail}"})


def initialize_app():
    """Initialize the application dependencies."""
    settings = get_copilot_settings(default_provider="gemini")

    try:
        store = create_memory_store(settings["database_url"])
        registry = build_server_registry(store, get_api_keys()["TAVILY_API_KEY"])
        session = create_session(get_server_system_instruction(), registry.schemas(), settings["provider"])
        routes.configure(session, registry)
        logger.info(f"Copilot initialized with provider {settings['provider']} and {len(registry)} tools")
    except ConfigError as e:
        # Requests are answered with the configuration error until the key is set
        logger.error(f"Copilot configuration error: {str(e)}")
        routes.configure(None, None, str(e))

    return app
