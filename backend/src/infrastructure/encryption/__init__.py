"""Infrastructure encryption utilities."""

from .envelope_cipher import (
    DecryptionError,
    generate_key,
    encrypt_envelope,
    decrypt_envelope,
    looks_encrypted,
    decrypt_if_encrypted,
    compute_signature,
    verify_signature,
)

__all__ = [
    "DecryptionError",
    "generate_key",
    "encrypt_envelope",
    "decrypt_envelope",
    "looks_encrypted",
    "decrypt_if_encrypted",
    "compute_signature",
    "verify_signature",
]
