"""
Backup and sync - versioned JSON snapshot of every collection.

The local snapshot is refreshed once at startup and then on a debounced timer
driven by store change notifications. Restores upsert each collection by id in
dependency order; there is no transaction across collections, so a failure
partway leaves the earlier collections already written.
"""
import asyncio
import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..config.settings import BACKUP_VERSION
from ..errors import BackupFormatError, PersistenceError
from .schema import BACKUP_KEYS, IMPORT_ORDER, COLLECTIONS
from .store import TableStore

logger = logging.getLogger(__name__)


class BackupDocument(BaseModel):
    """On-disk backup format. products/productRegions are absent in older files."""
    model_config = ConfigDict(populate_by_name=True)

    version: str
    exported_at: Optional[str] = Field(default=None, alias="exportedAt")
    customers: list[dict[str, Any]]
    price_history: list[dict[str, Any]] = Field(alias="priceHistory")
    customer_pricing_tiers: list[dict[str, Any]] = Field(alias="customerPricingTiers")
    products: list[dict[str, Any]] = Field(default_factory=list)
    product_regions: list[dict[str, Any]] = Field(default_factory=list, alias="productRegions")

    def rows(self, table: str) -> list[dict]:
        return getattr(self, table)

    def counts(self) -> dict[str, int]:
        return {table: len(self.rows(table)) for table in IMPORT_ORDER}

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)


def export_backup(store: TableStore) -> BackupDocument:
    """Read every collection into a new backup document."""
    data = {table: store.select(table) for table in IMPORT_ORDER}
    return BackupDocument(
        version=BACKUP_VERSION,
        exported_at=datetime.now(timezone.utc).isoformat(),
        **data,
    )


def dumps(doc: BackupDocument) -> str:
    return json.dumps(doc.to_json(), indent=2, ensure_ascii=False)


def parse_backup(text) -> BackupDocument:
    """
    Parse and validate a backup file.

    Every row is checked against its collection schema here, so a malformed
    file is rejected before any write happens.
    """
    try:
        raw = json.loads(text)
    except (TypeError, ValueError) as e:
        raise BackupFormatError(f"Backup file is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise BackupFormatError("Backup file must contain a JSON object")

    try:
        doc = BackupDocument.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(part) for part in first['loc'])
        raise BackupFormatError(f"Invalid backup format: {where}: {first['msg']}") from e

    for table in IMPORT_ORDER:
        model = COLLECTIONS[table]
        for i, row in enumerate(doc.rows(table)):
            try:
                model.model_validate(row)
            except ValidationError as e:
                raise BackupFormatError(
                    f"Invalid row {i} in {BACKUP_KEYS[table]}: {e.errors()[0]['msg']}"
                ) from e
    return doc


def import_backup(store: TableStore, doc: BackupDocument) -> dict[str, int]:
    """Upsert each non-empty collection in dependency order; returns counts."""
    counts = {}
    for table in IMPORT_ORDER:
        rows = doc.rows(table)
        if not rows:
            counts[table] = 0
            continue
        counts[table] = store.upsert(table, rows)
        logger.info("Restored %d rows into %s", counts[table], table)
    return counts


class LocalSnapshot:
    """The durable local copy of the last backup document."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def save(self, doc: BackupDocument):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(dumps(doc), encoding="utf-8")
        tmp.replace(self.path)

    def load(self) -> Optional[BackupDocument]:
        """Return the stored document, or None when missing or unreadable."""
        if not self.path.exists():
            return None
        try:
            return parse_backup(self.path.read_text(encoding="utf-8"))
        except (OSError, BackupFormatError) as e:
            logger.warning("Local snapshot %s unreadable: %s", self.path, e)
            return None

    def clear(self):
        self.path.unlink(missing_ok=True)


class DebouncedTrigger:
    """
    Run an async callback once notifications have been quiet for a period.

    Each notify() restarts the quiet-period timer. A notification that lands
    while the callback is running schedules exactly one follow-up run, and
    two runs never overlap. notify() may be called from any thread.
    """

    def __init__(self, callback: Callable[[], Awaitable[Any]], quiet_period: float,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        self.callback = callback
        self.quiet_period = quiet_period
        self.loop = loop
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._rerun = False
        self._closed = False

    def _bind_loop(self) -> asyncio.AbstractEventLoop:
        if self.loop is None:
            self.loop = asyncio.get_running_loop()
        return self.loop

    def notify(self):
        if self._closed:
            return
        loop = self._bind_loop()
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._reset_timer()
        else:
            loop.call_soon_threadsafe(self._reset_timer)

    def _reset_timer(self):
        if self._closed:
            return
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self.loop.call_later(self.quiet_period, self._fire)

    def _fire(self):
        self._timer = None
        if self._closed:
            return
        if self._task is not None and not self._task.done():
            self._rerun = True
            return
        self._task = self.loop.create_task(self._run())

    async def _run(self):
        while True:
            self._rerun = False
            try:
                await self.callback()
            except Exception:
                logger.exception("Debounced callback failed")
            if not self._rerun or self._closed:
                break

    @property
    def pending(self) -> bool:
        return self._timer is not None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def close(self):
        """Cancel the pending timer and any run in progress."""
        self._closed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass


class BackupManager:
    """Owns the local snapshot and keeps it fresh from store notifications."""

    def __init__(self, store: TableStore, snapshot: LocalSnapshot, quiet_period: float = 2.0):
        self.store = store
        self.snapshot = snapshot
        self.quiet_period = quiet_period
        self.last_backup_at: Optional[str] = None
        self._trigger: Optional[DebouncedTrigger] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._lock = threading.Lock()

    def perform_backup(self) -> BackupDocument:
        """Pull every collection from the store into the local snapshot."""
        with self._lock:
            doc = export_backup(self.store)
            self.snapshot.save(doc)
            self.last_backup_at = doc.exported_at
        logger.info("Local backup written: %s", doc.counts())
        return doc

    def sync_to_remote(self) -> dict[str, int]:
        """Push the local snapshot back into the store."""
        doc = self.snapshot.load()
        if doc is None:
            raise BackupFormatError("No local backup available to sync")
        return import_backup(self.store, doc)

    def restore(self, text) -> dict[str, int]:
        """Import an uploaded backup file, then refresh the local snapshot."""
        doc = parse_backup(text)
        counts = import_backup(self.store, doc)
        self.perform_backup()
        return counts

    def _on_change(self, table: str, event: str):
        if self._trigger is not None:
            self._trigger.notify()

    async def _backup_async(self):
        await asyncio.to_thread(self.perform_backup)

    async def start(self):
        """Initial snapshot, then debounced re-snapshot on every store change."""
        self._trigger = DebouncedTrigger(self._backup_async, self.quiet_period, asyncio.get_running_loop())
        try:
            await self._backup_async()
        except (PersistenceError, OSError) as e:
            logger.warning("Initial backup failed: %s", e)
        self._unsubscribe = self.store.subscribe(self._on_change)

    async def stop(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._trigger is not None:
            await self._trigger.close()
            self._trigger = None


UNKNOWN = "unknown"
CHECKING = "checking"
CONNECTED = "connected"
DISCONNECTED = "disconnected"


class BackupStatusMonitor:
    """Polls store reachability. Purely observational; never gates writes."""

    def __init__(self, store: TableStore, interval: float = 5.0):
        self.store = store
        self.interval = interval
        self.status = UNKNOWN
        self.checked_at: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    async def check(self) -> str:
        self.status = CHECKING
        try:
            ok = await asyncio.to_thread(self.store.ping)
        except Exception:
            logger.exception("Store ping failed")
            ok = False
        self.status = CONNECTED if ok else DISCONNECTED
        self.checked_at = datetime.now(timezone.utc).isoformat()
        return self.status

    async def _poll(self):
        while True:
            await self.check()
            await asyncio.sleep(self.interval)

    def start(self):
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._poll())

    async def stop(self):
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
