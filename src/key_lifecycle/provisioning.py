"""Key Lifecycle - Least-Privilege Access Provisioning.

Renders ACL policy documents from declarative templates and provisions
them, plus AppRole machine identities bound to them, in the secret store.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .client import AppRoleCredential, SecretStoreClient
from .config import (
    DEFAULT_AGENT_KEY_NAME,
    DEFAULT_APP_NAME,
    DEFAULT_MOUNT_POINT,
    DEFAULT_SECRET_PATH,
    Capability,
)
from .exceptions import ConfigurationError, StoreError

logger = logging.getLogger(__name__)

AGENT_POLICY = "agent_key_access"
ROTATION_POLICY = "key_rotation"
ADMIN_POLICY = "admin"


@dataclass(frozen=True)
class AccessPolicy:
    """Declarative least-privilege policy template.

    ``capabilities`` are granted on every entry of ``required_secret_paths``;
    both keep the order they are given in.
    """

    name: str
    description: str
    path: str
    capabilities: Tuple[str, ...]
    required_secret_paths: Tuple[str, ...]

    def __post_init__(self):
        object.__setattr__(self, "capabilities", tuple(self.capabilities))
        object.__setattr__(self, "required_secret_paths", tuple(self.required_secret_paths))
        valid = {c.value for c in Capability}
        unknown = [c for c in self.capabilities if c not in valid]
        if unknown:
            raise ConfigurationError(f"Unknown capabilities for policy {self.name}: {unknown}")
        if not self.required_secret_paths:
            raise ConfigurationError(f"Policy {self.name} grants no paths")


def standard_policies(
    app_name: str = DEFAULT_APP_NAME,
    secret_path: str = DEFAULT_SECRET_PATH,
    mount_point: str = DEFAULT_MOUNT_POINT,
    agent_key_name: str = DEFAULT_AGENT_KEY_NAME,
) -> Dict[str, AccessPolicy]:
    """The standard policy catalog for one application namespace.

    Paths are expanded against the versioned key-value engine layout
    (``{mount}/data/...`` for values, ``{mount}/metadata/...`` for listing).
    """
    secret_path = secret_path.strip("/")
    app_root = secret_path.split("/")[0]
    return {
        AGENT_POLICY: AccessPolicy(
            name=f"{app_name}-agent-key-access",
            description="Least privilege access for the signing agent",
            path=secret_path,
            capabilities=(Capability.READ.value,),
            required_secret_paths=(
                f"{mount_point}/data/{secret_path}/{agent_key_name}",
                f"{mount_point}/data/{secret_path}/metadata/{agent_key_name}",
            ),
        ),
        ROTATION_POLICY: AccessPolicy(
            name=f"{app_name}-key-rotation",
            description="Policy for the automated key rotation service",
            path=secret_path,
            capabilities=tuple(c.value for c in Capability),
            required_secret_paths=(
                f"{mount_point}/data/{secret_path}/*",
                f"{mount_point}/metadata/{secret_path}/*",
            ),
        ),
        ADMIN_POLICY: AccessPolicy(
            name=f"{app_name}-admin",
            description=f"Full administrative access to {app_name} secrets",
            path=app_root,
            capabilities=tuple(c.value for c in Capability),
            required_secret_paths=(
                f"{mount_point}/data/{app_root}/*",
                f"{mount_point}/metadata/{app_root}/*",
            ),
        ),
    }


def render_policy_document(policy: AccessPolicy) -> str:
    """Expand ``required_secret_paths x capabilities`` into the ACL grammar.

    Pure and deterministic: the same template always renders the same text.
    """
    capabilities = ", ".join(f'"{c}"' for c in policy.capabilities)
    blocks = [
        f'path "{path}" {{\n  capabilities = [{capabilities}]\n}}'
        for path in policy.required_secret_paths
    ]
    header = f'# {policy.description}\nname = "{policy.name}"'
    return "\n\n".join([header] + blocks)


class AccessPolicyProvisioner:
    """Provisions the standard policies and machine identities."""

    def __init__(
        self,
        client: SecretStoreClient,
        policies: Optional[Dict[str, AccessPolicy]] = None,
        app_name: str = DEFAULT_APP_NAME,
    ):
        self.client = client
        self.app_name = app_name
        self.policies = policies if policies is not None else standard_policies(app_name=app_name)

    def render_policy_document(self, policy: AccessPolicy) -> str:
        return render_policy_document(policy)

    def provision_policy(self, policy: AccessPolicy) -> bool:
        try:
            self.client.create_policy(policy.name, render_policy_document(policy))
        except StoreError as exc:
            logger.error("Failed to create policy %s: %s", policy.name, exc)
            return False
        logger.info("Created policy %s", policy.name)
        return True

    def provision_app_role(
        self,
        role_name: str,
        policy_names: Sequence[str],
        ttl: str = "1h",
        max_ttl: str = "24h",
    ) -> bool:
        try:
            self.client.create_app_role(role_name, list(policy_names), ttl=ttl, max_ttl=max_ttl)
        except StoreError as exc:
            logger.error("Failed to create AppRole %s: %s", role_name, exc)
            return False
        logger.info("Created AppRole %s bound to %s", role_name, ", ".join(policy_names))
        return True

    def issue_credentials(self, role_name: str) -> Optional[AppRoleCredential]:
        """Mint a role ID / secret ID pair. Hand it to the requester; do not store it."""
        try:
            credential = self.client.issue_app_role_credentials(role_name)
        except StoreError as exc:
            logger.error("Failed to issue credentials for AppRole %s: %s", role_name, exc)
            return None
        logger.info("Issued credentials for AppRole %s", role_name)
        return credential

    def standard_roles(self) -> List[Tuple[str, List[str]]]:
        return [
            (f"{self.app_name}-agent", [self.policies[AGENT_POLICY].name]),
            (f"{self.app_name}-rotation", [self.policies[ROTATION_POLICY].name]),
        ]

    def setup_all(self) -> bool:
        """Provision agent and rotation policies, then their AppRoles.

        Best effort: every step runs even if an earlier one failed.
        The admin policy is catalogued but never provisioned here.
        """
        results = [
            self.provision_policy(self.policies[AGENT_POLICY]),
            self.provision_policy(self.policies[ROTATION_POLICY]),
        ]
        for role_name, policy_names in self.standard_roles():
            results.append(self.provision_app_role(role_name, policy_names))

        if all(results):
            logger.info("Least privilege access set up")
            return True
        logger.warning(
            "Least privilege setup incomplete: %d of %d steps failed",
            results.count(False),
            len(results),
        )
        return False
