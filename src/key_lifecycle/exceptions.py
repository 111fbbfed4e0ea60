"""Key Lifecycle - Exception Hierarchy.

Typed failures for the secret store binding and the signing path.
Infrastructure layers (client, facade) convert most of these into safe
defaults; the signing path lets KeyPolicyViolationError propagate.
"""

from typing import Optional


class KeyLifecycleError(Exception):
    """Base exception for the key lifecycle package."""


class ConfigurationError(KeyLifecycleError):
    """Raised when a configuration value is out of range."""


class StoreError(KeyLifecycleError):
    """Base class for failures reported by, or on the way to, the secret store."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        status_text: str = "",
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.status_text = status_text


class TransportError(StoreError):
    """Network failure or unexpected non-success response. Retryable."""


class SecretNotFoundError(StoreError):
    """The requested secret does not exist (HTTP 404)."""


class ForbiddenError(StoreError):
    """The token is not allowed to perform the operation (HTTP 403)."""


class KeyPolicyViolationError(KeyLifecycleError):
    """Raised when a key has exceeded its rotation grace period.

    This is the one condition that must stop signing outright.
    """

    def __init__(self, key_name: str, message: Optional[str] = None):
        super().__init__(message or f"Key {key_name} has exceeded rotation grace period")
        self.key_name = key_name


class MalformedKeyMaterialError(KeyLifecycleError):
    """Stored material is present but does not parse into a signing key."""


class SigningKeyUnavailableError(KeyLifecycleError):
    """No signing key could be obtained for a sign request."""

    def __init__(self, key_name: str):
        super().__init__(f"Failed to get signing key for {key_name}")
        self.key_name = key_name
