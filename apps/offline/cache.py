# apps/offline/cache.py

"""
Route-aware HTTP response cache for the offline client.

OfflineCacheAdapter is mounted on a requests Session and picks a strategy
for every GET it sees:

- cache-first for static assets (matched by file extension)
- network-first for API reads (matched by path pattern)
- stale-while-revalidate for everything else

Responses are kept in a Django cache alias under versioned cache names,
so bumping the version and activating drops the old entries.
"""

import hashlib
import json
import logging
import re
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional
from urllib.parse import urlsplit

import requests
from django.core.cache import caches
from requests.adapters import BaseAdapter, HTTPAdapter
from requests.structures import CaseInsensitiveDict
from requests.utils import get_encoding_from_headers

from .local_store import now_ms

logger = logging.getLogger(__name__)

CACHE_PREFIX = 'corkboard'
REGISTRY_KEY = f'{CACHE_PREFIX}:offline:caches'

CACHE_FIRST = 'cache-first'
NETWORK_FIRST = 'network-first'
STALE_WHILE_REVALIDATE = 'stale-while-revalidate'

CACHE_HEADER = 'X-Offline-Cache'

# Registry and url indexes are read-modify-write; revalidation threads share them
_index_lock = threading.RLock()


class ResponseCache:
    """Named response caches stored in a Django cache backend"""

    def __init__(self, alias: str = 'offline', version: str = 'v1'):
        self.alias = alias
        self.version = version
        self.backend = caches[alias]

    @property
    def static_name(self) -> str:
        return f'{CACHE_PREFIX}-static-{self.version}'

    @property
    def api_name(self) -> str:
        return f'{CACHE_PREFIX}-api-{self.version}'

    @property
    def dynamic_name(self) -> str:
        return f'{CACHE_PREFIX}-{self.version}'

    @property
    def current_names(self) -> List[str]:
        return [self.static_name, self.api_name, self.dynamic_name]

    # === Registry ===

    @staticmethod
    def _entry_key(name: str, url: str) -> str:
        digest = hashlib.sha256(url.encode('utf-8')).hexdigest()
        return f'{name}:{digest}'

    @staticmethod
    def _index_key(name: str) -> str:
        return f'{name}:urls'

    def cache_names(self) -> List[str]:
        return list(self.backend.get(REGISTRY_KEY, []))

    def urls(self, name: str) -> List[str]:
        return list(self.backend.get(self._index_key(name), []))

    def _register(self, name: str, url: str):
        with _index_lock:
            names = self.cache_names()
            if name not in names:
                names.append(name)
                self.backend.set(REGISTRY_KEY, names, timeout=None)
            urls = self.urls(name)
            if url not in urls:
                urls.append(url)
                self.backend.set(self._index_key(name), urls, timeout=None)

    # === Entries ===

    def match(self, name: str, url: str) -> Optional[Dict]:
        return self.backend.get(self._entry_key(name, url))

    def lookup(self, name: str, url: str) -> Optional[Dict]:
        """Entry from the named cache, else from any other current cache"""
        for candidate in [name] + [item for item in self.current_names if item != name]:
            entry = self.match(candidate, url)
            if entry is not None:
                return entry
        return None

    def put(self, name: str, url: str, response: requests.Response):
        entry = {
            'url': url,
            'status': response.status_code,
            'reason': response.reason,
            'headers': dict(response.headers),
            'content': response.content,
            'cachedAt': now_ms(),
        }
        self.backend.set(self._entry_key(name, url), entry, timeout=None)
        self._register(name, url)

    def delete(self, name: str):
        """Drops a whole named cache"""
        with _index_lock:
            keys = [self._entry_key(name, url) for url in self.urls(name)]
            keys.append(self._index_key(name))
            self.backend.delete_many(keys)
            names = [item for item in self.cache_names() if item != name]
            self.backend.set(REGISTRY_KEY, names, timeout=None)

    def delete_stale(self) -> List[str]:
        """Drops every cache that does not belong to the current version"""
        stale = [name for name in self.cache_names() if name not in self.current_names]
        for name in stale:
            self.delete(name)
        return stale


def build_response(request: requests.PreparedRequest, status: int, content: bytes,
                   headers: Optional[Dict] = None, reason: str = '') -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    response.headers = CaseInsensitiveDict(headers or {})
    response._content = content
    response.encoding = get_encoding_from_headers(response.headers)
    response.url = request.url
    response.request = request
    return response


def response_from_entry(request, entry: Dict) -> requests.Response:
    headers = dict(entry['headers'])
    headers[CACHE_HEADER] = 'hit'
    return build_response(request, entry['status'], entry['content'], headers, entry.get('reason', ''))


def offline_response(request) -> requests.Response:
    return build_response(request, 503, b'Offline', {'Content-Type': 'text/plain'}, 'Service Unavailable')


def offline_api_response(request) -> requests.Response:
    body = json.dumps({'error': 'Offline', 'offline': True}).encode('utf-8')
    return build_response(request, 503, body, {'Content-Type': 'application/json'}, 'Service Unavailable')


class OfflineCacheAdapter(BaseAdapter):
    """
    Transport adapter applying the offline caching strategies

    Network fetches go through `transport`, a plain HTTPAdapter unless
    another adapter is given. Non-GET requests pass straight through.
    """

    def __init__(self, response_cache: ResponseCache, api_patterns: Iterable[str] = (),
                 static_extensions: Iterable[str] = (), transport: Optional[BaseAdapter] = None,
                 store=None, executor: Optional[ThreadPoolExecutor] = None):
        super().__init__()
        self.response_cache = response_cache
        self.api_patterns = [re.compile(pattern) for pattern in api_patterns]
        self.static_extensions = tuple(ext.lower() for ext in static_extensions)
        self.transport = transport or HTTPAdapter()
        self.store = store
        self.executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix='offline-revalidate')

    def close(self):
        self.executor.shutdown(wait=True)
        self.transport.close()

    # === Routing ===

    def strategy_for(self, url: str) -> str:
        path = urlsplit(url).path
        if any(pattern.search(path) for pattern in self.api_patterns):
            return NETWORK_FIRST
        if path.lower().endswith(self.static_extensions):
            return CACHE_FIRST
        return STALE_WHILE_REVALIDATE

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        kwargs = {'stream': stream, 'timeout': timeout, 'verify': verify, 'cert': cert, 'proxies': proxies}

        scheme = urlsplit(request.url).scheme
        if request.method != 'GET' or scheme not in ('http', 'https'):
            return self.transport.send(request, **kwargs)

        strategy = self.strategy_for(request.url)
        if strategy == CACHE_FIRST:
            return self.cache_first(request, kwargs)
        if strategy == NETWORK_FIRST:
            return self.network_first(request, kwargs)
        return self.stale_while_revalidate(request, kwargs)

    def _fetch_and_store(self, name: str, request, kwargs) -> requests.Response:
        response = self.transport.send(request, **kwargs)
        if response.ok:
            self.response_cache.put(name, request.url, response)
        return response

    # === Strategies ===

    def cache_first(self, request, kwargs) -> requests.Response:
        name = self.response_cache.static_name
        entry = self.response_cache.lookup(name, request.url)
        if entry is not None:
            return response_from_entry(request, entry)

        try:
            return self._fetch_and_store(name, request, kwargs)
        except requests.RequestException as e:
            logger.info("Static asset %s unavailable offline: %s", request.url, e)
            return offline_response(request)

    def network_first(self, request, kwargs) -> requests.Response:
        name = self.response_cache.api_name
        try:
            return self._fetch_and_store(name, request, kwargs)
        except requests.RequestException as e:
            logger.info("Network failed for %s, falling back to cache: %s", request.url, e)

        entry = self.response_cache.lookup(name, request.url)
        if entry is not None:
            return response_from_entry(request, entry)
        return offline_api_response(request)

    def stale_while_revalidate(self, request, kwargs) -> requests.Response:
        name = self.response_cache.dynamic_name
        entry = self.response_cache.lookup(name, request.url)
        if entry is not None:
            self.executor.submit(self._revalidate, name, request.copy(), kwargs)
            return response_from_entry(request, entry)

        try:
            return self._fetch_and_store(name, request, kwargs)
        except requests.RequestException as e:
            logger.info("%s unavailable offline: %s", request.url, e)
            return offline_response(request)

    def _revalidate(self, name, request, kwargs):
        try:
            self._fetch_and_store(name, request, kwargs)
        except requests.RequestException as e:
            logger.debug("Background refresh of %s failed: %s", request.url, e)

    # === Lifecycle ===

    def install(self, base_url: str, assets: Iterable[str]) -> int:
        """Precaches the static asset list, returns how many were stored"""
        base_url = base_url.rstrip('/')
        stored = 0
        for asset in assets:
            request = requests.Request('GET', f"{base_url}{asset}").prepare()
            try:
                response = self._fetch_and_store(self.response_cache.static_name, request, {'timeout': None})
            except requests.RequestException as e:
                logger.warning("Could not precache %s: %s", asset, e)
                continue
            if response.ok:
                stored += 1
            else:
                logger.warning("Could not precache %s: HTTP %s", asset, response.status_code)
        logger.info("Precached %d static assets", stored)
        return stored

    def activate(self) -> List[str]:
        stale = self.response_cache.delete_stale()
        if stale:
            logger.info("Deleted old caches: %s", ', '.join(stale))
        return stale

    def handle_message(self, message):
        """
        Control messages from the application

        skipWaiting (a bare string or {'type': 'skipWaiting'}) activates the
        current cache version, CACHE_BOARD writes a board snapshot to the
        local store and CLEAR_OFFLINE_DATA empties it.
        """
        # The page posts skipWaiting as a bare string
        message_type = message if isinstance(message, str) else (message or {}).get('type')

        if message_type == 'skipWaiting':
            return self.activate()

        if message_type == 'CACHE_BOARD':
            board = message.get('board')
            if self.store is None or not board:
                logger.warning("CACHE_BOARD ignored - no store or no board")
                return None
            self.store.cache_board(board)
            return board.get('id')

        if message_type == 'CLEAR_OFFLINE_DATA':
            if self.store is not None:
                self.store.clear_offline_data()
            return None

        logger.debug("Unknown control message %r", message_type)
        return None
