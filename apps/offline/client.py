# apps/offline/client.py

import logging
from typing import Dict, Optional

import requests
from django.conf import settings

from .cache import OfflineCacheAdapter, ResponseCache
from .connectivity import ConnectivityMonitor
from .local_store import LocalStore, PendingOperation
from .sync import SyncEngine

logger = logging.getLogger(__name__)


class OfflineClient:
    """
    Offline-capable API client

    Wires the local store, connectivity monitor, sync engine and
    response cache around one requests Session.
    """

    def __init__(self, base_url: str, session: requests.Session, store: LocalStore,
                 monitor: ConnectivityMonitor, engine: SyncEngine, adapter: OfflineCacheAdapter,
                 timeout: float = 10.0, auto_sync: bool = True):
        self.base_url = base_url.rstrip('/')
        self.session = session
        self.store = store
        self.monitor = monitor
        self.engine = engine
        self.adapter = adapter
        self.timeout = timeout

        if auto_sync:
            self.engine.attach(self.monitor)

    def url_for(self, endpoint: str) -> str:
        return self.engine.url_for(endpoint)

    def get(self, endpoint: str, **kwargs) -> requests.Response:
        kwargs.setdefault('timeout', self.timeout)
        return self.session.get(self.url_for(endpoint), **kwargs)

    def sign_in(self, username: str, password: str) -> bool:
        try:
            response = self.session.post(
                self.url_for('/api/auth/signin'),
                json={'username': username, 'password': password},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("Sign in failed: %s", e)
            return False
        return response.ok

    def mutate(self, type: str, method: str, endpoint: str, data=None) -> Optional[requests.Response]:
        """
        Sends a write, or queues it when the server is out of reach

        Returns the server response, or None when the operation was queued.
        """
        operation = PendingOperation.create(type, method, endpoint, data)

        if self.monitor.is_online:
            try:
                return self.engine.replay(operation)
            except requests.RequestException as e:
                logger.info("Write to %s failed, queueing: %s", endpoint, e)
                self.monitor.set_offline()

        self.store.add_pending_operation(operation)
        return None

    def sync_now(self):
        return self.engine.sync()

    def check_connection(self) -> bool:
        return self.monitor.check_connection()

    def handle_message(self, message: Dict):
        return self.adapter.handle_message(message)

    def status(self) -> Dict:
        status = self.monitor.status()
        status.update({
            'pendingOperations': self.store.pending_count(),
            'lastSyncTime': self.engine.last_sync_time,
            'isSyncing': self.engine.is_syncing,
        })
        return status

    def close(self):
        self.session.close()
        self.store.close()


def build_offline_client(base_url: str, store_path: Optional[str] = None,
                         session: Optional[requests.Session] = None, transport=None,
                         online: bool = False, auto_sync: bool = True) -> OfflineClient:
    """Builds an OfflineClient from the CORKBOARD_OFFLINE_* settings"""
    timeout = settings.CORKBOARD_OFFLINE_REQUEST_TIMEOUT
    session = session or requests.Session()
    store = LocalStore(store_path or settings.CORKBOARD_OFFLINE_STORE_PATH)

    response_cache = ResponseCache(
        alias=settings.CORKBOARD_OFFLINE_CACHE_ALIAS,
        version=settings.CORKBOARD_OFFLINE_CACHE_VERSION,
    )
    adapter = OfflineCacheAdapter(
        response_cache,
        api_patterns=settings.CORKBOARD_OFFLINE_API_PATTERNS,
        static_extensions=settings.CORKBOARD_OFFLINE_STATIC_EXTENSIONS,
        transport=transport,
        store=store,
    )
    session.mount('http://', adapter)
    session.mount('https://', adapter)

    monitor = ConnectivityMonitor(
        session,
        base_url,
        health_endpoint=settings.CORKBOARD_OFFLINE_HEALTH_ENDPOINT,
        timeout=timeout,
        online=online,
    )
    engine = SyncEngine(
        store,
        session,
        base_url,
        timeout=timeout,
        max_errors=settings.CORKBOARD_OFFLINE_MAX_SYNC_ERRORS,
    )
    return OfflineClient(base_url, session, store, monitor, engine, adapter,
                         timeout=timeout, auto_sync=auto_sync)
