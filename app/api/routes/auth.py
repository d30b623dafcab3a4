# app/api/routes/auth.py

from fastapi import APIRouter
from fastapi_users import FastAPIUsers
from models.registered_user import RegisteredUser
from schemas.user_schema import UserRead, UserCreate, UserUpdate, LanguageInfo, OnlineCountResponse
from services.user_manager import get_user_manager
from services.translation_service import TranslationService
from infrastructure.auth_config import auth_backend
from infrastructure.socketio_manager import registry


# Initialize FastAPIUsers with our user manager and auth backend
fastapi_users = FastAPIUsers[RegisteredUser, int](
    get_user_manager=get_user_manager,
    auth_backends=[auth_backend],
)

# Create routers
auth_router = APIRouter(prefix="/auth", tags=["Authentication"])
users_router = APIRouter(prefix="/users", tags=["Users"])

# Include authentication routes (login, logout)
auth_router.include_router(
    fastapi_users.get_auth_router(auth_backend),
)

# Registration places the new user in their server's alliance (see UserManager.on_after_register)
auth_router.include_router(
    fastapi_users.get_register_router(UserRead, UserCreate),
)

# Dependency to get current active user
current_active_user = fastapi_users.current_user(active=True)


@users_router.get("/online-count", response_model=OnlineCountResponse)
async def get_online_users_count():
    """
    Get the total number of online users.
    """
    return OnlineCountResponse(count=registry.get_online_users_count())


@users_router.get("/languages", response_model=list[LanguageInfo])
async def get_supported_languages():
    """Languages a user can pick as their preferred language"""
    return TranslationService.get_supported_languages()


# Include user management routes (get, update, delete user)
# Note: This is included AFTER our custom endpoints so /online-count is not read as a user id
users_router.include_router(
    fastapi_users.get_users_router(UserRead, UserUpdate),
)
