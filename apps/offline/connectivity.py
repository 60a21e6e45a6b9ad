# apps/offline/connectivity.py

import logging
from datetime import datetime
from typing import Callable, List, Optional

import requests
from django.utils import timezone

logger = logging.getLogger(__name__)

FAST_EFFECTIVE_TYPES = ('4g', '3g')


class ConnectivityMonitor:
    """
    Tracks whether the server is reachable

    Listeners are called with the new state only when it changes,
    so repeated "online" events do not trigger repeated syncs.
    """

    def __init__(self, session: requests.Session, base_url: str,
                 health_endpoint: str = '/api/health', timeout: float = 10.0,
                 online: bool = False):
        self.session = session
        self.base_url = base_url.rstrip('/')
        self.health_endpoint = health_endpoint
        self.timeout = timeout

        self.is_online = online
        self.went_online_at: Optional[datetime] = timezone.now() if online else None
        self.connection_type: Optional[str] = None
        self.effective_type: Optional[str] = None
        self._listeners: List[Callable[[bool], None]] = []

    def add_listener(self, callback: Callable[[bool], None]):
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[bool], None]):
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self):
        for callback in list(self._listeners):
            callback(self.is_online)

    # === Events ===

    def set_online(self) -> bool:
        """Handles an "online" event, returns True on a transition"""
        if self.is_online:
            return False
        self.is_online = True
        self.went_online_at = timezone.now()
        logger.info("Connection restored")
        self._notify()
        return True

    def set_offline(self) -> bool:
        if not self.is_online:
            return False
        self.is_online = False
        logger.info("Connection lost")
        self._notify()
        return True

    def set_link_info(self, connection_type: Optional[str] = None, effective_type: Optional[str] = None):
        self.connection_type = connection_type
        self.effective_type = effective_type

    @property
    def is_fast(self) -> bool:
        return self.effective_type in FAST_EFFECTIVE_TYPES

    # === Health check ===

    @property
    def health_url(self) -> str:
        return f"{self.base_url}{self.health_endpoint}"

    def check_connection(self) -> bool:
        """One-shot HEAD on the health endpoint"""
        try:
            response = self.session.head(self.health_url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.debug("Health check failed: %s", e)
            self.set_offline()
            return False

        if response.ok:
            self.set_online()
            return True

        logger.debug("Health check returned %s", response.status_code)
        self.set_offline()
        return False

    def status(self) -> dict:
        return {
            'isOnline': self.is_online,
            'connectionType': self.connection_type,
            'effectiveType': self.effective_type,
            'isFast': self.is_fast,
            'wentOnlineAt': self.went_online_at.isoformat() if self.went_online_at else None,
        }
