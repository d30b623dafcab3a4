# app/main.py

from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI
from api.routes import auth, alliance, messages
from api.exception_handlers import register_exception_handlers
from infrastructure.redis_connection import redis_connection
from infrastructure.postgres_connection import postgres_connection
from infrastructure.translation_client import translation_client
from config.settings import settings
import socketio
import logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events"""
    # Startup: Initialize connections
    await redis_connection.connect()
    await postgres_connection.connect()
    await translation_client.connect()
    logger.info(f"{settings.APP_NAME} started")

    yield

    # Shutdown: Close connections
    await translation_client.disconnect()
    await postgres_connection.disconnect()
    await redis_connection.disconnect()


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# Register domain exception handlers
register_exception_handlers(app)


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint for Docker and monitoring"""
    return {"status": "healthy"}


# CORS configuration - can't use "*" with allow_credentials=True
app.add_middleware(
    middleware_class=CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,  # Required for cookies/authentication
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.auth_router, prefix="/v1")
app.include_router(auth.users_router, prefix="/v1")
app.include_router(alliance.alliance_router, prefix="/v1")
app.include_router(messages.messages_router, prefix="/v1")

# Import Socket.IO instance and register all namespaces
from api.socketio import sio

# Wrap FastAPI app with Socket.IO
# Socket.IO handles /socket.io/* paths and passes everything else to FastAPI
app = socketio.ASGIApp(sio, app)
