"""Key Lifecycle - Composition.

Builds the client, facade, scheduler, signing cache and provisioner
from one LifecycleConfig, wired by explicit reference. Compose once at
process start; tests can build as many isolated instances as they need.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from .client import SecretStoreClient
from .clock import Clock, utcnow
from .config import LifecycleConfig
from .facade import SecretAccessFacade
from .provisioning import AccessPolicyProvisioner, standard_policies
from .scheduler import RotationScheduler
from .signing import SigningKeyCache

logger = logging.getLogger(__name__)


@dataclass
class KeyLifecycle:
    """The composed key lifecycle components."""

    config: LifecycleConfig
    client: SecretStoreClient
    facade: SecretAccessFacade
    scheduler: RotationScheduler
    signing: SigningKeyCache
    provisioner: AccessPolicyProvisioner

    @classmethod
    def from_config(
        cls,
        config: LifecycleConfig,
        session: Optional[requests.Session] = None,
        clock: Clock = utcnow,
    ) -> "KeyLifecycle":
        client = SecretStoreClient(config.store, session=session)
        facade = SecretAccessFacade(
            client,
            config.secret_path,
            config.mount_point,
            rotation_config=config.rotation,
            retry_config=config.retry,
            clock=clock,
        )
        scheduler = RotationScheduler(facade.rotation, config.job, clock=clock)
        signing = SigningKeyCache(
            facade,
            cache_ttl_ms=config.cache_ttl_ms,
            clock=clock,
            default_grace_period_days=config.rotation.grace_period_days,
        )
        provisioner = AccessPolicyProvisioner(
            client,
            policies=standard_policies(
                app_name=config.app_name,
                secret_path=config.secret_path,
                mount_point=config.mount_point,
                agent_key_name=config.agent_key_name,
            ),
            app_name=config.app_name,
        )
        # Freshly rotated material replaces whatever the cache holds.
        scheduler.add_rotation_hook(signing.clear_cache)
        return cls(
            config=config,
            client=client,
            facade=facade,
            scheduler=scheduler,
            signing=signing,
            provisioner=provisioner,
        )

    def close(self) -> None:
        """Stop background rotation, wait for an in-flight pass, then release the connection pool."""
        self.scheduler.stop()
        self.client.close()
        logger.info("Key lifecycle closed")

    def __enter__(self) -> "KeyLifecycle":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
