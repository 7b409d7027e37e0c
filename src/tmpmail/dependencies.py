"""FastAPI dependencies for shared application resources.

The store and listener are created once during startup and attached to
``app.state``; endpoints reach them through these dependencies instead of
module-level globals.
"""

from typing import Annotated, Optional

from fastapi import Depends, Request

from .config import Settings
from .smtp.listener import SMTPListener
from .store.expiring_store import ExpiringStore


def get_store(request: Request) -> ExpiringStore:
    """Shared message store for the running application."""
    return request.app.state.store


def get_listener(request: Request) -> Optional[SMTPListener]:
    """Mail listener, or None when the API runs without one."""
    return getattr(request.app.state, "listener", None)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


StoreDep = Annotated[ExpiringStore, Depends(get_store)]
ListenerDep = Annotated[Optional[SMTPListener], Depends(get_listener)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
