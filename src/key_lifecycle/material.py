"""Key Lifecycle - Signing key material format.

Two encodings are accepted for stored material:

* Machine-generated seeds: ``"S"`` followed by the unpadded base32
  encoding of 32 CSPRNG bytes (53 characters).
* Human-provisioned Stellar secret seeds: StrKey ``S...`` strings with a
  version byte and CRC16 checksum (56 characters), decoded by stellar_sdk.

Either way the 32-byte seed is an Ed25519 private key.
"""

import base64
import binascii
import secrets

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from stellar_sdk import Keypair

from .exceptions import MalformedKeyMaterialError

KEY_MATERIAL_PREFIX = "S"
SEED_BYTES = 32
ENCODED_SEED_LENGTH = 52  # base32 of 32 bytes, padding stripped
STELLAR_SEED_LENGTH = 56


def generate_key_material() -> str:
    """Fresh seed with 256 bits of entropy, alphabet ``A-Z2-7``."""
    encoded = base64.b32encode(secrets.token_bytes(SEED_BYTES)).decode("ascii")
    return KEY_MATERIAL_PREFIX + encoded.rstrip("=")


def is_generated_material(material: str) -> bool:
    """True when ``material`` has the shape of a machine-generated seed."""
    return (
        isinstance(material, str)
        and material.startswith(KEY_MATERIAL_PREFIX)
        and len(material) == len(KEY_MATERIAL_PREFIX) + ENCODED_SEED_LENGTH
    )


def is_stellar_secret(material: str) -> bool:
    """True when ``material`` has the shape of a Stellar secret seed."""
    return (
        isinstance(material, str)
        and material.startswith(KEY_MATERIAL_PREFIX)
        and len(material) == STELLAR_SEED_LENGTH
    )


def _decode_generated(material: str) -> bytes:
    encoded = material[len(KEY_MATERIAL_PREFIX):]
    padding = "=" * (-len(encoded) % 8)
    try:
        seed = base64.b32decode(encoded + padding)
    except (binascii.Error, ValueError) as exc:
        raise MalformedKeyMaterialError("key material is not valid base32") from exc
    if len(seed) != SEED_BYTES:
        raise MalformedKeyMaterialError("key material decodes to the wrong length")
    return seed


def _decode_stellar(material: str) -> bytes:
    try:
        return Keypair.from_secret(material).raw_secret_key()
    except ValueError as exc:
        # stellar_sdk raises ValueError subclasses for bad version bytes and checksums
        raise MalformedKeyMaterialError("key material is not a valid Stellar secret seed") from exc


def parse_key_material(material: str) -> Ed25519PrivateKey:
    """Decode a seed into an Ed25519 private key.

    Raises:
        MalformedKeyMaterialError: if the text is not a valid seed.
    """
    if is_generated_material(material):
        seed = _decode_generated(material)
    elif is_stellar_secret(material):
        seed = _decode_stellar(material)
    else:
        raise MalformedKeyMaterialError("key material has unexpected prefix or length")
    return Ed25519PrivateKey.from_private_bytes(seed)
