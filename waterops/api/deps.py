from fastapi import Request

from waterops.config.settings import Settings
from waterops.schemas.api_models import Identity
from waterops.store.base import RecordStore


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> RecordStore:
    """The store created during app startup (or injected by tests)."""
    return request.app.state.store


def get_identity(request: Request) -> Identity:
    """
    Operator the request runs as. Authentication is mocked: the identity
    comes from configuration and is injected per request.
    """
    return request.app.state.settings.operator_identity()
