"""Stores for OAuth state.

Two kinds of state live here:
- Expiring stores for pending authorizations and issued authorization
  codes (short-lived, 10 minute TTL).
- The client registry for dynamically registered OAuth clients (no TTL).

Each has an in-memory variant (single instance, lost on restart) and a
Supabase-backed variant (shared across instances). Both expose the same
methods, so the endpoints never know which one they were given.

Access tokens and refresh tokens are JWT-based (stateless) and don't
require storage - they're validated via signature verification.
"""

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

STATE_TTL_SECONDS = 10 * 60
SWEEP_INTERVAL_SECONDS = 60

PENDING_AUTHORIZATIONS_TABLE = "oauth_pending_authorizations"
AUTHORIZATION_CODES_TABLE = "oauth_authorization_codes"
REGISTERED_CLIENTS_TABLE = "oauth_registered_clients"


class ExpiringStore:
    """Key -> record mapping where records expire ttl seconds after put().

    get() is not read-only: an expired hit is deleted before returning None.
    A background sweep started with start() removes stale entries every
    sweep_interval seconds regardless of reads.
    """

    def __init__(
        self,
        name: str,
        ttl_seconds: float = STATE_TTL_SECONDS,
        sweep_interval: float = SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.name = name
        self.ttl_seconds = ttl_seconds
        self.sweep_interval = sweep_interval
        self.clock = clock

        self._shutdown = threading.Event()
        self._sweep_thread: Optional[threading.Thread] = None

    def put(self, key: str, record: dict) -> None:
        raise NotImplementedError

    def get(self, key: str) -> Optional[dict]:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def pop(self, key: str) -> Optional[dict]:
        """Remove key and return its record if it had not expired.

        At most one caller gets the record for a given key, however many
        race for it.
        """
        raise NotImplementedError

    def sweep(self) -> int:
        """Remove every expired entry. Returns how many were removed."""
        raise NotImplementedError

    def is_expired(self, created_at: float) -> bool:
        return self.clock() - created_at > self.ttl_seconds

    def start(self) -> None:
        """Start the background sweep thread (no-op if already running)."""
        if self._sweep_thread and self._sweep_thread.is_alive():
            return
        self._shutdown.clear()
        self._sweep_thread = threading.Thread(
            target=self._sweep_worker,
            name=f"sweep-{self.name}",
            daemon=True,
        )
        self._sweep_thread.start()
        logger.info(f"[STORE] Sweep started for {self.name} (every {self.sweep_interval}s)")

    def stop(self) -> None:
        """Stop the background sweep thread and wait for it to exit."""
        self._shutdown.set()
        if self._sweep_thread:
            self._sweep_thread.join(timeout=5)
            self._sweep_thread = None
            logger.info(f"[STORE] Sweep stopped for {self.name}")

    def _sweep_worker(self):
        """Background thread that sweeps expired entries periodically."""
        while not self._shutdown.wait(self.sweep_interval):
            try:
                removed = self.sweep()
                if removed:
                    logger.debug(f"[STORE] Swept {removed} expired entries from {self.name}")
            except Exception as e:
                # Keep sweeping on the next tick; a failed pass loses nothing
                logger.warning(f"[STORE] Sweep of {self.name} failed: {e}")


class MemoryExpiringStore(ExpiringStore):
    """In-process expiring store guarded by a lock."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._entries: dict[str, dict] = {}
        self._lock = threading.Lock()

    def put(self, key: str, record: dict) -> None:
        entry = dict(record)
        entry["created_at"] = self.clock()
        with self._lock:
            self._entries[key] = entry

    def get(self, key: str) -> Optional[dict]:
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return None
        if self.is_expired(entry["created_at"]):
            self.delete(key)
            return None
        return dict(entry)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def pop(self, key: str) -> Optional[dict]:
        with self._lock:
            entry = self._entries.pop(key, None)
        if entry is None or self.is_expired(entry["created_at"]):
            return None
        return entry

    def sweep(self) -> int:
        with self._lock:
            expired = [
                key for key, entry in self._entries.items()
                if self.is_expired(entry["created_at"])
            ]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class SupabaseExpiringStore(ExpiringStore):
    """Expiring store backed by a Supabase table.

    Expected table layout:
        key text primary key, data jsonb, created_at double precision
    """

    def __init__(self, supabase_client, table: str, *args, **kwargs):
        super().__init__(table, *args, **kwargs)
        self.supabase = supabase_client
        self.table = table

    def put(self, key: str, record: dict) -> None:
        self.supabase.table(self.table).upsert({
            "key": key,
            "data": record,
            "created_at": self.clock(),
        }).execute()

    def get(self, key: str) -> Optional[dict]:
        response = (
            self.supabase.table(self.table)
            .select("data, created_at")
            .eq("key", key)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None

        row = response.data[0]
        if self.is_expired(row["created_at"]):
            self.delete(key)
            return None

        entry = dict(row.get("data") or {})
        entry["created_at"] = row["created_at"]
        return entry

    def delete(self, key: str) -> None:
        self.supabase.table(self.table).delete().eq("key", key).execute()

    def pop(self, key: str) -> Optional[dict]:
        # The row comes back only to the request whose DELETE removed it
        response = self.supabase.table(self.table).delete().eq("key", key).execute()
        if not response.data:
            return None

        row = response.data[0]
        if self.is_expired(row["created_at"]):
            return None

        entry = dict(row.get("data") or {})
        entry["created_at"] = row["created_at"]
        return entry

    def sweep(self) -> int:
        cutoff = self.clock() - self.ttl_seconds
        response = (
            self.supabase.table(self.table)
            .delete()
            .lt("created_at", cutoff)
            .execute()
        )
        return len(response.data or [])


class MemoryClientRegistry:
    """OAuth client registration (dynamic client registration), in memory."""

    def __init__(self):
        self._clients: dict[str, dict] = {}
        self._lock = threading.Lock()

    def put(self, client_id: str, record: dict) -> None:
        with self._lock:
            self._clients[client_id] = dict(record)

    def get(self, client_id: str) -> Optional[dict]:
        with self._lock:
            record = self._clients.get(client_id)
        return dict(record) if record is not None else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)


class SupabaseClientRegistry:
    """OAuth client registration stored in a Supabase table.

    Expected table layout:
        client_id text primary key, data jsonb
    """

    def __init__(self, supabase_client, table: str = REGISTERED_CLIENTS_TABLE):
        self.supabase = supabase_client
        self.table = table

    def put(self, client_id: str, record: dict) -> None:
        self.supabase.table(self.table).insert({
            "client_id": client_id,
            "data": record,
        }).execute()

    def get(self, client_id: str) -> Optional[dict]:
        response = (
            self.supabase.table(self.table)
            .select("data")
            .eq("client_id", client_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return response.data[0]["data"]


class OAuthStores:
    """The three stores the OAuth endpoints work against."""

    def __init__(self, pending_authorizations, authorization_codes, registered_clients):
        self.pending_authorizations = pending_authorizations
        self.authorization_codes = authorization_codes
        self.registered_clients = registered_clients

    def start(self) -> None:
        self.pending_authorizations.start()
        self.authorization_codes.start()

    def stop(self) -> None:
        self.pending_authorizations.stop()
        self.authorization_codes.stop()


def create_memory_stores(clock: Callable[[], float] = time.time) -> OAuthStores:
    return OAuthStores(
        pending_authorizations=MemoryExpiringStore("pending_authorizations", clock=clock),
        authorization_codes=MemoryExpiringStore("authorization_codes", clock=clock),
        registered_clients=MemoryClientRegistry(),
    )


def create_supabase_stores(supabase_client, clock: Callable[[], float] = time.time) -> OAuthStores:
    return OAuthStores(
        pending_authorizations=SupabaseExpiringStore(
            supabase_client, PENDING_AUTHORIZATIONS_TABLE, clock=clock
        ),
        authorization_codes=SupabaseExpiringStore(
            supabase_client, AUTHORIZATION_CODES_TABLE, clock=clock
        ),
        registered_clients=SupabaseClientRegistry(supabase_client),
    )


def create_stores(config) -> OAuthStores:
    """Build the stores for the backend selected by STATE_BACKEND."""
    if config.state_backend == "supabase":
        from supabase import create_client

        supabase = create_client(config.supabase_url, config.supabase_key)
        logger.info("[STORE] Using Supabase-backed OAuth state")
        return create_supabase_stores(supabase)

    if config.state_backend != "memory":
        raise ValueError(f"Unknown STATE_BACKEND: {config.state_backend}")

    logger.info("[STORE] Using in-memory OAuth state")
    return create_memory_stores()
