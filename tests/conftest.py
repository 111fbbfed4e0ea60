"""Pytest configuration and shared fixtures."""

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from pathlib import Path
from typing import Any, Dict, List, Optional, Set
from urllib.parse import urlsplit

import pytest
import requests
from requests.adapters import BaseAdapter

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.key_lifecycle.clock import format_timestamp  # noqa: E402
from src.key_lifecycle.config import StoreConfig  # noqa: E402
from src.key_lifecycle.client import SecretStoreClient  # noqa: E402
from src.resilience import NO_RETRY  # noqa: E402


T0 = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class MutableClock:
    """Controllable clock returning aware UTC datetimes."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@dataclass
class StoreRequest:
    """One request as the fake store received it."""

    method: str
    path: str
    headers: Dict[str, str]
    body: Dict[str, Any] = field(default_factory=dict)
    timeout: Any = None


def _response(request: requests.PreparedRequest, status: int, payload: Optional[dict] = None):
    response = requests.Response()
    response.status_code = status
    response.reason = HTTPStatus(status).phrase
    response.request = request
    response.url = request.url
    response.encoding = "utf-8"
    response._content = b""
    if payload is not None:
        response.headers["Content-Type"] = "application/json"
        response._content = json.dumps(payload).encode()
    return response


class _StoreAdapter(BaseAdapter):
    """requests transport adapter that hands every request to a FakeSecretStore."""

    def __init__(self, store: "FakeSecretStore"):
        super().__init__()
        self.store = store

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        return self.store.handle(request, timeout)

    def close(self) -> None:
        pass


class FakeSecretStore:
    """In-memory secret store speaking the versioned key-value HTTP API.

    Mounted on a requests.Session, which hvac uses underneath. Failure
    injection: ``down`` fails every request at the network level,
    ``fail_paths`` returns 500 for matching request paths, ``fail_next``
    answers the next N requests with 503, ``list_status`` overrides the
    LIST response status.
    """

    def __init__(self, token: str = "test-token"):
        self.token = token
        self.secrets: Dict[str, List[dict]] = {}
        self.policies: Dict[str, str] = {}
        self.roles: Dict[str, dict] = {}
        self.mounts: Dict[str, dict] = {}
        self.requests: List[StoreRequest] = []
        self.down = False
        self.fail_paths: Set[str] = set()
        self.list_status: Optional[int] = None
        self.fail_list_network = False
        self.fail_next = 0
        self.now = T0

    # ── Helpers for tests ────────────────────────────────────────────

    def put(self, mount: str, path: str, data: dict) -> None:
        versions = self.secrets.setdefault(f"{mount}/{path}", [])
        versions.append({"data": dict(data), "version": len(versions) + 1})

    def latest(self, mount: str, path: str) -> Optional[dict]:
        versions = self.secrets.get(f"{mount}/{path}")
        return versions[-1]["data"] if versions else None

    def calls(self, method: str, contains: str = "") -> List[StoreRequest]:
        return [
            r for r in self.requests
            if r.method == method and contains in r.path
        ]

    def session(self) -> requests.Session:
        session = requests.Session()
        session.mount("http://", _StoreAdapter(self))
        session.mount("https://", _StoreAdapter(self))
        return session

    # ── Request handling ─────────────────────────────────────────────

    def handle(self, request: requests.PreparedRequest, timeout=None) -> requests.Response:
        path = urlsplit(request.url).path
        body = json.loads(request.body) if request.body else {}
        self.requests.append(StoreRequest(
            method=request.method,
            path=path,
            headers=dict(request.headers),
            body=body,
            timeout=timeout,
        ))
        if self.down:
            raise requests.ConnectionError("connection refused", request=request)
        if request.method == "LIST" and self.fail_list_network:
            raise requests.ConnectionError("connection refused", request=request)
        if self.fail_next:
            self.fail_next -= 1
            return _response(request, 503, {"errors": ["sealed"]})
        if any(fragment in path for fragment in self.fail_paths):
            return _response(request, 500, {"errors": ["internal error"]})
        if request.headers.get("X-Vault-Token") != self.token:
            return _response(request, 403, {"errors": ["permission denied"]})

        assert path.startswith("/v1/")
        route = path[len("/v1/"):]

        if route == "sys/health":
            return _response(request, 200, {"initialized": True, "sealed": False})
        if route.startswith("sys/policies/acl/"):
            return self._policy(request, route[len("sys/policies/acl/"):], body)
        if route.startswith("sys/mounts/"):
            self.mounts[route[len("sys/mounts/"):]] = body
            return _response(request, 204)
        if route.startswith("sys/auth/approle/role/"):
            self.roles[route[len("sys/auth/approle/role/"):]] = body
            return _response(request, 204)
        if route.startswith("auth/approle/role/"):
            return self._approle(request, route[len("auth/approle/role/"):])

        mount, kind, secret_path = route.split("/", 2)
        if kind == "data":
            return self._data(request, f"{mount}/{secret_path}", body)
        if kind == "metadata" and request.method == "LIST":
            return self._list(request, f"{mount}/{secret_path}")
        return _response(request, 405)

    def _data(self, request, key: str, body: dict) -> requests.Response:
        if request.method == "GET":
            versions = self.secrets.get(key)
            if not versions:
                return _response(request, 404, {"errors": []})
            latest = versions[-1]
            return _response(request, 200, {"data": {
                "data": latest["data"],
                "metadata": {
                    "version": latest["version"],
                    "created_time": format_timestamp(self.now),
                    "deletion_time": "",
                    "destroyed": False,
                },
            }})
        if request.method == "POST":
            versions = self.secrets.setdefault(key, [])
            versions.append({"data": body.get("data", {}), "version": len(versions) + 1})
            return _response(request, 200, {"data": {
                "version": len(versions),
                "created_time": format_timestamp(self.now),
            }})
        if request.method == "DELETE":
            self.secrets.pop(key, None)
            return _response(request, 204)
        return _response(request, 405)

    def _list(self, request, prefix: str) -> requests.Response:
        if self.list_status is not None:
            return _response(request, self.list_status)
        prefix = prefix.rstrip("/") + "/"
        children = set()
        for key in self.secrets:
            if key.startswith(prefix):
                rest = key[len(prefix):]
                head, sep, _ = rest.partition("/")
                children.add(head + "/" if sep else head)
        if not children:
            return _response(request, 404, {"errors": []})
        return _response(request, 200, {"data": {"keys": sorted(children)}})

    def _policy(self, request, name: str, body: dict) -> requests.Response:
        if request.method == "GET":
            if name not in self.policies:
                return _response(request, 404, {"errors": []})
            return _response(request, 200, {"data": {"name": name, "policy": self.policies[name]}})
        if request.method == "POST":
            self.policies[name] = body["policy"]
            return _response(request, 204)
        return _response(request, 405)

    def _approle(self, request, rest: str) -> requests.Response:
        role_name, _, action = rest.partition("/")
        if role_name not in self.roles:
            return _response(request, 404, {"errors": ["role not found"]})
        if action == "role-id" and request.method == "GET":
            return _response(request, 200, {"data": {"role_id": f"role-{role_name}"}})
        if action == "secret-id" and request.method == "POST":
            return _response(request, 200, {"data": {
                "secret_id": f"secret-{role_name}",
                "secret_id_accessor": "acc-1",
                "secret_id_ttl": 3600,
            }})
        return _response(request, 405)


@pytest.fixture
def store() -> FakeSecretStore:
    return FakeSecretStore()


@pytest.fixture
def store_config() -> StoreConfig:
    return StoreConfig(base_url="http://vault.test:8200", token="test-token", timeout_seconds=5.0)


@pytest.fixture
def client(store, store_config) -> SecretStoreClient:
    c = SecretStoreClient(store_config, session=store.session())
    yield c
    c.close()


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def no_retry():
    return NO_RETRY
