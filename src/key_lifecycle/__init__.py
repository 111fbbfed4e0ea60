"""Signing Key Lifecycle Management.

Retrieves signing keys from a networked secret store, caches them,
enforces rotation grace periods before signing, rotates keys in bounded
background batches, and provisions least-privilege policies and AppRole
identities.
"""

from .config import (
    Capability,
    StoreConfig,
    RotationConfig,
    RotationJobConfig,
    KeyAccessConfig,
    LifecycleConfig,
)
from .exceptions import (
    KeyLifecycleError,
    ConfigurationError,
    StoreError,
    TransportError,
    SecretNotFoundError,
    ForbiddenError,
    KeyPolicyViolationError,
    MalformedKeyMaterialError,
    SigningKeyUnavailableError,
)
from .result import (
    Lookup,
    LookupStatus,
)
from .client import (
    SecretMetadata,
    SecretRecord,
    AppRoleCredential,
    SecretStoreClient,
)
from .rotation import (
    RotationMetadata,
    RotationStatus,
    RotationEngine,
)
from .facade import SecretAccessFacade
from .material import (
    generate_key_material,
    parse_key_material,
)
from .scheduler import (
    RotationPassResult,
    SchedulerStatus,
    RotationScheduler,
)
from .signing import (
    SigningKey,
    SignedPayload,
    CachedKeyEntry,
    SigningKeyCache,
)
from .provisioning import (
    AccessPolicy,
    AccessPolicyProvisioner,
    render_policy_document,
    standard_policies,
)
from .settings import KeyLifecycleSettings
from .lifecycle import KeyLifecycle

__all__ = [
    # Config
    "Capability",
    "StoreConfig",
    "RotationConfig",
    "RotationJobConfig",
    "KeyAccessConfig",
    "LifecycleConfig",
    "KeyLifecycleSettings",
    # Errors
    "KeyLifecycleError",
    "ConfigurationError",
    "StoreError",
    "TransportError",
    "SecretNotFoundError",
    "ForbiddenError",
    "KeyPolicyViolationError",
    "MalformedKeyMaterialError",
    "SigningKeyUnavailableError",
    # Results
    "Lookup",
    "LookupStatus",
    # Client
    "SecretMetadata",
    "SecretRecord",
    "AppRoleCredential",
    "SecretStoreClient",
    # Facade & rotation
    "SecretAccessFacade",
    "RotationMetadata",
    "RotationStatus",
    "RotationEngine",
    # Scheduler
    "RotationPassResult",
    "SchedulerStatus",
    "RotationScheduler",
    "generate_key_material",
    "parse_key_material",
    # Signing
    "SigningKey",
    "SignedPayload",
    "CachedKeyEntry",
    "SigningKeyCache",
    # Provisioning
    "AccessPolicy",
    "AccessPolicyProvisioner",
    "render_policy_document",
    "standard_policies",
    # Composition
    "KeyLifecycle",
]
