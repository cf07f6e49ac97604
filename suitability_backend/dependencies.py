from fastapi import Depends, HTTPException, Request

from .config import Settings
from .database import MemStorage
from .models import User
from .services.analysis import AnalysisProvider


def get_store(request: Request) -> MemStorage:
    return request.app.state.store


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_analysis_provider(request: Request) -> AnalysisProvider:
    return request.app.state.analysis_provider


def get_current_user(
    store: MemStorage = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> User:
    """The advisor the dashboard acts as; there is no login."""
    if settings.demo_username:
        user = store.get_user_by_username(settings.demo_username)
    else:
        user = store.get_first_user()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
