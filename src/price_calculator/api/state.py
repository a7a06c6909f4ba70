"""
Application state shared by the routers.

One AppState is built per app and stored on `app.state.services`; routers
receive it through the `get_state` dependency instead of module globals.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from ..config.settings import Settings
from ..engine.pricing_engine import PricingEngine
from ..services.assistant_client import AssistantClient
from ..services.backup_service import BackupManager, BackupStatusMonitor, LocalSnapshot
from ..services.catalog_service import CatalogService
from ..services.history_service import HistoryService
from ..services.store import TableStore, build_store


@dataclass
class AppState:
    settings: Settings
    store: TableStore
    engine: PricingEngine
    catalog: CatalogService
    history: HistoryService
    backups: BackupManager
    status: BackupStatusMonitor
    assistant: Optional[AssistantClient] = None


def build_state(settings: Settings, store: Optional[TableStore] = None) -> AppState:
    store = store or build_store(settings)
    assistant = None
    if settings.assistant_url:
        assistant = AssistantClient(settings.assistant_url, settings.assistant_key)
    return AppState(
        settings=settings,
        store=store,
        engine=PricingEngine(),
        catalog=CatalogService(store),
        history=HistoryService(store, limit=settings.history_limit),
        backups=BackupManager(store, LocalSnapshot(settings.local_backup_path), settings.backup_debounce_seconds),
        status=BackupStatusMonitor(store, settings.backup_status_poll_seconds),
        assistant=assistant,
    )


def get_state(request: Request) -> AppState:
    return request.app.state.services
