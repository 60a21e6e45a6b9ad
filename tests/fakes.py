# tests/fakes.py

"""Stand-ins for the network used by the offline kit tests"""

import requests
from requests.adapters import BaseAdapter

from apps.offline.cache import build_response


class FakeResponse:

    def __init__(self, status_code=200, reason=''):
        self.status_code = status_code
        self.reason = reason

    @property
    def ok(self):
        return self.status_code < 400


class FakeSession:
    """
    Answers requests from a list of scripted outcomes

    An outcome is a status code or an exception instance.
    """

    def __init__(self, outcomes=(), on_request=None):
        self.outcomes = list(outcomes)
        self.on_request = on_request
        self.calls = []

    def _next(self):
        outcome = self.outcomes.pop(0) if self.outcomes else 200
        if isinstance(outcome, Exception):
            raise outcome
        return FakeResponse(outcome)

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.on_request:
            self.on_request(method, url, kwargs)
        return self._next()

    def head(self, url, **kwargs):
        return self.request('HEAD', url, **kwargs)


class FakeTransport(BaseAdapter):
    """
    Transport adapter serving canned bodies per URL

    URLs missing from `routes` raise ConnectionError, as if offline.
    """

    def __init__(self, routes=None):
        super().__init__()
        self.routes = dict(routes or {})
        self.sent = []

    def send(self, request, **kwargs):
        self.sent.append((request.method, request.url))
        if request.url not in self.routes:
            raise requests.ConnectionError(f"offline: {request.url}")
        status, body = self.routes[request.url]
        return build_response(request, status, body, {'Content-Type': 'application/json'})

    def close(self):
        pass
