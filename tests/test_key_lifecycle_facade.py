"""Tests for the secret access facade."""

import pytest

from src.key_lifecycle.config import StoreConfig
from src.key_lifecycle.client import SecretStoreClient
from src.key_lifecycle.exceptions import TransportError
from src.key_lifecycle.facade import SecretAccessFacade
from src.key_lifecycle.result import LookupStatus
from src.key_lifecycle.rotation import NEVER_ROTATED, RotationEngine
from src.resilience import RetryConfig

FAST_RETRY = RetryConfig(
    max_retries=2,
    base_delay=0.0,
    max_delay=0.0,
    jitter_max=0.0,
    retryable_exceptions=(TransportError,),
)


@pytest.fixture
def facade(client, clock, no_retry):
    return SecretAccessFacade(client, "signer/keys", "secret", retry_config=no_retry, clock=clock)


@pytest.fixture
def retrying_facade(client, clock):
    return SecretAccessFacade(client, "signer/keys", "secret", retry_config=FAST_RETRY, clock=clock)


# ── Secret Access Tests ───────────────────────────────────────────────


class TestSecretAccess:
    def test_set_then_get(self, store, facade):
        assert facade.set_secret("hot-wallet", "abc") is True
        assert store.latest("secret", "signer/keys/hot-wallet") == {"value": "abc"}
        assert facade.get_secret("hot-wallet") == "abc"

    def test_get_missing_returns_none(self, facade):
        assert facade.get_secret("missing") is None

    def test_fetch_found(self, store, facade):
        store.put("secret", "signer/keys/a", {"value": "abc"})
        lookup = facade.fetch_secret("a")
        assert lookup.status == LookupStatus.FOUND
        assert lookup.value == "abc"

    def test_fetch_absent(self, facade):
        assert facade.fetch_secret("missing").status == LookupStatus.ABSENT

    def test_fetch_empty_value_is_absent(self, store, facade):
        store.put("secret", "signer/keys/a", {"value": ""})
        assert facade.fetch_secret("a").is_absent

    def test_fetch_without_value_field_is_absent(self, store, facade):
        store.put("secret", "signer/keys/a", {"other": "x"})
        assert facade.fetch_secret("a").is_absent

    def test_fetch_store_failure_is_error(self, store, facade):
        store.down = True
        lookup = facade.fetch_secret("a")
        assert lookup.status == LookupStatus.ERROR
        assert lookup.error
        assert facade.get_secret("a") is None

    def test_forbidden_is_error(self, store):
        config = StoreConfig(base_url="http://vault.test:8200", token="wrong")
        with SecretStoreClient(config, session=store.session()) as c:
            f = SecretAccessFacade(c, "signer/keys")
            assert f.fetch_secret("a").is_error

    def test_set_failure_returns_false(self, store, facade):
        store.down = True
        assert facade.set_secret("a", "v") is False

    def test_delete(self, store, facade):
        store.put("secret", "signer/keys/a", {"value": "x"})
        assert facade.delete_secret("a") is True
        assert facade.get_secret("a") is None

    def test_delete_failure_returns_false(self, store, facade):
        store.down = True
        assert facade.delete_secret("a") is False

    def test_list(self, store, facade):
        store.put("secret", "signer/keys/a", {"value": "x"})
        store.put("secret", "signer/keys/b", {"value": "x"})
        assert facade.list_secrets() == ["a", "b"]

    def test_list_failure_returns_empty(self, store, facade):
        store.fail_list_network = True
        assert facade.list_secrets() == []

    def test_path_joined_under_namespace(self, store, client):
        f = SecretAccessFacade(client, "/signer/keys/", "secret")
        f.set_secret("a", "x")
        assert store.requests[-1].path == "/v1/secret/data/signer/keys/a"


# ── Retry Tests ───────────────────────────────────────────────────────


class TestRetries:
    def test_transport_failure_retried(self, store, retrying_facade):
        store.down = True
        assert retrying_facade.fetch_secret("a").is_error
        assert len(store.calls("GET", "signer/keys/a")) == 3

    def test_server_error_retried(self, store, retrying_facade):
        store.put("secret", "signer/keys/a", {"value": "x"})
        store.fail_paths.add("signer/keys/a")
        assert retrying_facade.get_secret("a") is None
        assert len(store.calls("GET", "signer/keys/a")) == 3

    def test_not_found_not_retried(self, store, retrying_facade):
        assert retrying_facade.fetch_secret("a").is_absent
        assert len(store.calls("GET", "signer/keys/a")) == 1

    def test_forbidden_not_retried(self, store, clock):
        config = StoreConfig(base_url="http://vault.test:8200", token="wrong")
        with SecretStoreClient(config, session=store.session()) as c:
            f = SecretAccessFacade(c, "signer/keys", retry_config=FAST_RETRY, clock=clock)
            assert f.fetch_secret("a").is_error
        assert len(store.calls("GET", "signer/keys/a")) == 1

    def test_recovers_after_transient_failure(self, store, retrying_facade):
        store.put("secret", "signer/keys/a", {"value": "ok"})
        store.fail_next = 2
        assert retrying_facade.get_secret("a") == "ok"
        assert len(store.calls("GET", "signer/keys/a")) == 3

    def test_write_retried(self, store, retrying_facade):
        store.down = True
        assert retrying_facade.set_secret("a", "v") is False
        assert len(store.calls("POST", "signer/keys/a")) == 3


# ── Rotation Delegation Tests ─────────────────────────────────────────


class TestRotationDelegation:
    def test_owns_engine_for_same_namespace(self, facade):
        assert isinstance(facade.rotation, RotationEngine)
        assert facade.rotation.secret_path == "signer/keys"
        assert facade.rotation.mount_point == "secret"

    def test_rotate_and_status(self, facade, clock):
        assert facade.get_rotation_status("a") == NEVER_ROTATED
        assert facade.rotate_key("a", "S1") is True
        status = facade.get_rotation_status("a")
        assert status.version == 1
        assert status.last_rotated == clock.now
        assert facade.fetch_rotation_status("a").is_found
        assert facade.get_secret("a") == "S1"


# ── Policy, Mount and Health Tests ────────────────────────────────────


class TestAdministration:
    def test_create_and_get_policy(self, facade):
        assert facade.create_policy("p", "doc") is True
        assert facade.get_policy("p") == "doc"

    def test_get_missing_policy(self, facade):
        assert facade.get_policy("missing") is None

    def test_policy_failures_return_defaults(self, store, facade):
        store.down = True
        assert facade.create_policy("p", "doc") is False
        assert facade.get_policy("p") is None

    def test_ensure_secrets_engine(self, store, facade):
        assert facade.ensure_secrets_engine() is True
        assert store.mounts["secret"]["type"] == "kv-v2"

    def test_ensure_secrets_engine_failure(self, store, facade):
        store.fail_paths.add("sys/mounts")
        assert facade.ensure_secrets_engine("kv-v2") is False

    def test_is_healthy(self, store, facade):
        assert facade.is_healthy() is True
        store.down = True
        assert facade.is_healthy() is False
