# apps/offline/sync.py

"""
Replays the pending-operations queue against the REST API.

Operations go out one by one in enqueue order. A successful response
removes the operation; a 401 stops the pass; anything else leaves the
operation queued for the next pass with its retryCount bumped.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import urljoin

import requests

from .local_store import LocalStore, PendingOperation, now_ms

logger = logging.getLogger(__name__)

LAST_SYNC_SETTING = 'lastSyncTime'


@dataclass
class SyncResult:
    synced: int = 0
    failed: int = 0
    aborted: bool = False
    skipped: bool = False
    remaining: int = 0
    errors: List[Dict] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.aborted and not self.skipped and self.failed == 0

    def as_dict(self) -> Dict:
        return {
            'synced': self.synced,
            'failed': self.failed,
            'aborted': self.aborted,
            'skipped': self.skipped,
            'remaining': self.remaining,
            'errors': list(self.errors),
        }


class SyncEngine:

    def __init__(self, store: LocalStore, session: requests.Session, base_url: str,
                 timeout: float = 10.0, max_errors: int = 50):
        self.store = store
        self.session = session
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_errors = max_errors

        self.is_syncing = False
        self.sync_errors: List[Dict] = []
        self.last_result: Optional[SyncResult] = None

    @property
    def last_sync_time(self) -> Optional[int]:
        return self.store.get_setting(LAST_SYNC_SETTING)

    def attach(self, monitor):
        """Syncs whenever the monitor reports the link coming back"""
        def on_change(is_online):
            if is_online and self.store.pending_count():
                self.sync()
        monitor.add_listener(on_change)
        return on_change

    def url_for(self, endpoint: str) -> str:
        if endpoint.startswith('/'):
            return f"{self.base_url}{endpoint}"
        return urljoin(f"{self.base_url}/", endpoint)

    def _record_error(self, operation: PendingOperation, error: str, status: Optional[int] = None):
        self.sync_errors.append({
            'operationId': operation.id,
            'method': operation.method,
            'endpoint': operation.endpoint,
            'status': status,
            'error': error,
            'timestamp': now_ms(),
        })
        del self.sync_errors[:-self.max_errors]

    def _retry_later(self, operation: PendingOperation):
        operation.retry_count += 1
        self.store.update_pending_operation(operation)

    def replay(self, operation: PendingOperation) -> requests.Response:
        kwargs = {'timeout': self.timeout}
        if operation.data is not None:
            kwargs['json'] = operation.data
        return self.session.request(operation.method, self.url_for(operation.endpoint), **kwargs)

    def sync(self) -> SyncResult:
        """One replay pass over the queue"""
        if self.is_syncing:
            logger.debug("Sync already running, skipping")
            return SyncResult(skipped=True, remaining=self.store.pending_count())

        self.is_syncing = True
        result = SyncResult()
        try:
            operations = self.store.get_pending_operations()
            logger.info("Syncing %d pending operations", len(operations))

            for operation in operations:
                try:
                    response = self.replay(operation)
                except requests.RequestException as e:
                    logger.warning("Replay of %s %s failed: %s", operation.method, operation.endpoint, e)
                    self._record_error(operation, str(e))
                    self._retry_later(operation)
                    result.failed += 1
                    continue

                if response.ok:
                    self.store.remove_pending_operation(operation.id)
                    result.synced += 1
                    continue

                if response.status_code == 401:
                    logger.warning("Sync aborted - session is no longer authenticated")
                    self._record_error(operation, 'Unauthorized', status=401)
                    result.aborted = True
                    break

                logger.warning("Replay of %s %s returned %s",
                               operation.method, operation.endpoint, response.status_code)
                self._record_error(operation, response.reason or 'HTTP error', status=response.status_code)
                self._retry_later(operation)
                result.failed += 1

            self.store.set_setting(LAST_SYNC_SETTING, now_ms())
            result.remaining = self.store.pending_count()
            result.errors = list(self.sync_errors)
        finally:
            self.is_syncing = False

        logger.info("Sync finished: %d synced, %d failed, %d remaining",
                    result.synced, result.failed, result.remaining)
        self.last_result = result
        return result
