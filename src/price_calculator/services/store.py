"""
Table stores - select/insert/update/delete/upsert keyed by UUID.

Two backends share one interface:
- LocalTableStore: one JSON file per collection under the data directory
- RestTableStore: hosted PostgREST backend over HTTP

Every successful write notifies subscribers with (table, event) so the
backup manager can schedule a fresh local snapshot.
"""
import json
import logging
import os
import threading
from pathlib import Path
from typing import Callable, Iterable, Optional

import requests
from pydantic import ValidationError

from ..config.settings import Settings
from ..errors import PersistenceError, RecordNotFound
from .schema import COLLECTIONS, PRODUCTS, normalize_row

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[str, str], None]


class TableStore:
    """Common interface and change notification for all backends."""

    def __init__(self):
        self._subscribers: list[ChangeCallback] = []
        self._subscribers_lock = threading.Lock()

    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        """Register a change callback; returns a function that removes it."""
        with self._subscribers_lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._subscribers_lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, table: str, event: str):
        with self._subscribers_lock:
            callbacks = list(self._subscribers)
        for callback in callbacks:
            try:
                callback(table, event)
            except Exception:
                logger.exception("Change subscriber failed for %s/%s", table, event)

    @staticmethod
    def _check_table(table: str):
        if table not in COLLECTIONS:
            raise PersistenceError(f"Unknown collection '{table}'")

    @staticmethod
    def _normalize(table: str, row: dict) -> dict:
        try:
            return normalize_row(table, row)
        except ValidationError as e:
            raise PersistenceError(f"Row rejected by {table} schema: {e.errors()[0]['msg']}") from e

    def select(self, table: str, order_by: Optional[str] = None, descending: bool = False,
               limit: Optional[int] = None, **filters) -> list[dict]:
        raise NotImplementedError

    def get(self, table: str, record_id: str) -> Optional[dict]:
        rows = self.select(table, id=record_id)
        return rows[0] if rows else None

    def insert(self, table: str, row: dict) -> dict:
        raise NotImplementedError

    def update(self, table: str, record_id: str, changes: dict) -> dict:
        raise NotImplementedError

    def delete(self, table: str, record_id: str) -> bool:
        raise NotImplementedError

    def upsert(self, table: str, rows: Iterable[dict]) -> int:
        raise NotImplementedError

    def ping(self) -> bool:
        raise NotImplementedError


def _sort_rows(rows: list[dict], order_by: Optional[str], descending: bool) -> list[dict]:
    if not order_by:
        return rows
    # None sorts first ascending, last descending
    return sorted(
        rows,
        key=lambda r: (r.get(order_by) is not None, r.get(order_by) if r.get(order_by) is not None else ""),
        reverse=descending,
    )


class LocalTableStore(TableStore):
    """JSON-file backed store; one file per collection, replaced atomically on write."""

    def __init__(self, data_dir: Path):
        super().__init__()
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    def _path(self, table: str) -> Path:
        return self.data_dir / f"{table}.json"

    def _read(self, table: str) -> list[dict]:
        path = self._path(table)
        if not path.exists():
            return []
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Cannot read {path.name}: {e}") from e
        return data if isinstance(data, list) else []

    def _write(self, table: str, rows: list[dict]):
        path = self._path(table)
        tmp_path = path.with_suffix('.json.tmp')
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(rows, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
        except OSError as e:
            raise PersistenceError(f"Cannot write {path.name}: {e}") from e

    def select(self, table: str, order_by: Optional[str] = None, descending: bool = False,
               limit: Optional[int] = None, **filters) -> list[dict]:
        self._check_table(table)
        with self._lock:
            rows = self._read(table)
        rows = [r for r in rows if all(r.get(k) == v for k, v in filters.items())]
        rows = _sort_rows(rows, order_by, descending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    def insert(self, table: str, row: dict) -> dict:
        self._check_table(table)
        normalized = self._normalize(table, row)
        with self._lock:
            rows = self._read(table)
            if any(r.get('id') == normalized['id'] for r in rows):
                raise PersistenceError(f"{table} '{normalized['id']}' already exists")
            rows.append(normalized)
            self._write(table, rows)
        self._notify(table, "INSERT")
        return normalized

    def update(self, table: str, record_id: str, changes: dict) -> dict:
        self._check_table(table)
        with self._lock:
            rows = self._read(table)
            for i, row in enumerate(rows):
                if row.get('id') == record_id:
                    merged = {**row, **changes, 'id': record_id}
                    rows[i] = self._normalize(table, merged)
                    self._write(table, rows)
                    updated = rows[i]
                    break
            else:
                raise RecordNotFound(table, record_id)
        self._notify(table, "UPDATE")
        return updated

    def delete(self, table: str, record_id: str) -> bool:
        self._check_table(table)
        with self._lock:
            rows = self._read(table)
            remaining = [r for r in rows if r.get('id') != record_id]
            if len(remaining) == len(rows):
                raise RecordNotFound(table, record_id)
            self._write(table, remaining)
        self._notify(table, "DELETE")
        return True

    def upsert(self, table: str, rows: Iterable[dict]) -> int:
        """Insert-or-replace by id; returns the number of rows written."""
        self._check_table(table)
        incoming = [self._normalize(table, row) for row in rows]
        if not incoming:
            return 0
        with self._lock:
            existing = self._read(table)
            index = {r.get('id'): i for i, r in enumerate(existing)}
            for row in incoming:
                if row['id'] in index:
                    existing[index[row['id']]] = row
                else:
                    index[row['id']] = len(existing)
                    existing.append(row)
            self._write(table, existing)
        self._notify(table, "UPSERT")
        return len(incoming)

    def ping(self) -> bool:
        return self.data_dir.is_dir() and os.access(self.data_dir, os.W_OK)


class RestTableStore(TableStore):
    """Hosted PostgREST backend (``/rest/v1/<table>``)."""

    def __init__(self, base_url: str, api_key: str, session: Optional[requests.Session] = None,
                 timeout: float = 10):
        super().__init__()
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        })

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    def _request(self, method: str, table: str, params: Optional[dict] = None,
                 payload=None, prefer: Optional[str] = None):
        headers = {"Prefer": prefer} if prefer else {}
        try:
            response = self.session.request(
                method,
                self._url(table),
                params=params,
                data=json.dumps(payload) if payload is not None else None,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise PersistenceError(f"{table}: {str(e)[:500]}") from e

        if response.status_code >= 400:
            raise PersistenceError(f"{table}: HTTP {response.status_code}: {response.text[:500]}")
        if not response.content:
            return []
        return response.json()

    def select(self, table: str, order_by: Optional[str] = None, descending: bool = False,
               limit: Optional[int] = None, **filters) -> list[dict]:
        self._check_table(table)
        params = {"select": "*"}
        for key, value in filters.items():
            params[key] = "is.null" if value is None else f"eq.{value}"
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = str(limit)
        return self._request("GET", table, params=params)

    def insert(self, table: str, row: dict) -> dict:
        self._check_table(table)
        normalized = self._normalize(table, row)
        created = self._request("POST", table, payload=normalized, prefer="return=representation")
        self._notify(table, "INSERT")
        return created[0] if created else normalized

    def update(self, table: str, record_id: str, changes: dict) -> dict:
        self._check_table(table)
        existing = self.get(table, record_id)
        if existing is None:
            raise RecordNotFound(table, record_id)
        normalized = self._normalize(table, {**existing, **changes, 'id': record_id})
        payload = {k: normalized[k] for k in changes if k in normalized}
        updated = self._request(
            "PATCH", table, params={"id": f"eq.{record_id}"},
            payload=payload, prefer="return=representation",
        )
        if not updated:
            raise RecordNotFound(table, record_id)
        self._notify(table, "UPDATE")
        return updated[0]

    def delete(self, table: str, record_id: str) -> bool:
        self._check_table(table)
        deleted = self._request(
            "DELETE", table, params={"id": f"eq.{record_id}"}, prefer="return=representation",
        )
        if not deleted:
            raise RecordNotFound(table, record_id)
        self._notify(table, "DELETE")
        return True

    def upsert(self, table: str, rows: Iterable[dict]) -> int:
        self._check_table(table)
        incoming = [self._normalize(table, row) for row in rows]
        if not incoming:
            return 0
        self._request(
            "POST", table, params={"on_conflict": "id"}, payload=incoming,
            prefer="resolution=merge-duplicates,return=minimal",
        )
        self._notify(table, "UPSERT")
        return len(incoming)

    def ping(self) -> bool:
        try:
            self._request("GET", PRODUCTS, params={"select": "id", "limit": "1"})
            return True
        except PersistenceError:
            return False


def build_store(settings: Settings) -> TableStore:
    """Create the store configured in settings."""
    if settings.store_backend == "rest":
        if not settings.store_url or not settings.store_key:
            raise ValueError("PRICE_CALC_STORE_URL and PRICE_CALC_STORE_KEY are required for the rest store")
        return RestTableStore(settings.store_url, settings.store_key)
    if settings.store_backend != "local":
        raise ValueError(f"Unknown store backend '{settings.store_backend}'")
    return LocalTableStore(settings.data_dir)
