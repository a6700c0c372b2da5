"""Envelope cipher for inbound webhook payloads.

Payload format (Base64 text):
    IV (16 bytes) + AES-256-CBC ciphertext (PKCS7 padded UTF-8 plaintext)

The key is a Base64-encoded 256-bit value shared with the marketplace
integration. Integrity is established by the HMAC signature checked at the
HTTP boundary before the envelope is opened; this module also provides that
signature helper.

looks_encrypted() is a heuristic used to decide whether a stored string
(e.g. a configured key) needs opening; callers must tolerate both false
positives and false negatives, which decrypt_if_encrypted() does.
"""

import base64
import binascii
import hashlib
import hmac
import logging
import os
from typing import Optional, Union

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

logger = logging.getLogger(__name__)

KEY_SIZE_BYTES = 32  # AES-256
IV_SIZE_BYTES = 16
BLOCK_SIZE_BITS = 128


class DecryptionError(Exception):
    """Raised when an envelope cannot be opened (malformed Base64, wrong key,
    truncated payload)."""
    pass


def _b64decode(text: str) -> bytes:
    # Whitespace is tolerated the way the sender's Base64 encoder emits it
    compact = "".join(text.split())
    return base64.b64decode(compact, validate=True)


def _decode_key(key: str) -> bytes:
    if not key:
        raise DecryptionError("Encryption key must not be empty")
    try:
        key_bytes = _b64decode(key)
    except (binascii.Error, ValueError) as e:
        raise DecryptionError(f"Encryption key is not valid Base64: {e}") from e
    if len(key_bytes) != KEY_SIZE_BYTES:
        raise DecryptionError(
            f"Encryption key must be {KEY_SIZE_BYTES} bytes, got {len(key_bytes)} bytes"
        )
    return key_bytes


def generate_key() -> str:
    """Generate a new Base64-encoded 256-bit key."""
    return base64.b64encode(os.urandom(KEY_SIZE_BYTES)).decode("ascii")


def encrypt_envelope(plaintext: str, key: str) -> str:
    """Encrypt plaintext into the envelope format.

    Args:
        plaintext: Text to encrypt (must not be empty)
        key: Base64 256-bit key

    Returns:
        Base64 text: IV + ciphertext

    Raises:
        ValueError: If plaintext is empty
        DecryptionError: If the key is malformed
    """
    if not plaintext:
        raise ValueError("Plaintext must not be empty")

    key_bytes = _decode_key(key)
    iv = os.urandom(IV_SIZE_BYTES)

    padder = padding.PKCS7(BLOCK_SIZE_BITS).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key_bytes), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    return base64.b64encode(iv + ciphertext).decode("ascii")


def decrypt_envelope(ciphertext: str, key: str) -> str:
    """Open an envelope.

    Args:
        ciphertext: Base64 text, IV-prefixed AES-256-CBC payload
        key: Base64 256-bit key

    Returns:
        Decrypted plaintext

    Raises:
        DecryptionError: On malformed Base64, wrong key or truncated payload
    """
    if not ciphertext:
        raise DecryptionError("Ciphertext must not be empty")

    key_bytes = _decode_key(key)

    try:
        data = _b64decode(ciphertext)
    except (binascii.Error, ValueError) as e:
        raise DecryptionError(f"Ciphertext is not valid Base64: {e}") from e

    body = data[IV_SIZE_BYTES:]
    if len(data) <= IV_SIZE_BYTES or len(body) % (BLOCK_SIZE_BITS // 8) != 0:
        raise DecryptionError(
            f"Ciphertext is truncated ({len(data)} bytes after Base64 decoding)"
        )

    iv = data[:IV_SIZE_BYTES]
    decryptor = Cipher(algorithms.AES(key_bytes), modes.CBC(iv)).decryptor()
    padded = decryptor.update(body) + decryptor.finalize()

    try:
        unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()
        raw = unpadder.update(padded) + unpadder.finalize()
        plaintext = raw.decode("utf-8-sig")
    except (ValueError, UnicodeDecodeError) as e:
        # Bad padding or non-UTF-8 output both mean the key does not match
        raise DecryptionError("Decryption failed: wrong key or corrupted payload") from e

    logger.debug(
        f"Opened envelope: {len(data)} bytes encrypted -> {len(raw)} bytes plaintext"
    )
    return plaintext


def looks_encrypted(text: object) -> bool:
    """True iff text is Base64 whose decoded length exceeds the IV length.

    Never raises.
    """
    if not isinstance(text, str) or not text:
        return False
    try:
        return len(_b64decode(text)) > IV_SIZE_BYTES
    except (binascii.Error, ValueError):
        return False


def decrypt_if_encrypted(text: Optional[str], key: str) -> Optional[str]:
    """Open text when it looks like an envelope, else return it unchanged.

    Decryption failures fall back to the original text.
    """
    if not text or not looks_encrypted(text):
        return text
    try:
        return decrypt_envelope(text, key)
    except DecryptionError:
        logger.debug("Value looked encrypted but did not decrypt; using it verbatim")
        return text


def compute_signature(message: Union[str, bytes], hmac_key: str) -> str:
    """Base64 HMAC-SHA256 of message under hmac_key."""
    if isinstance(message, str):
        message = message.encode("utf-8")
    digest = hmac.new(hmac_key.encode("utf-8"), message, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(
    message: Union[str, bytes],
    signature: Optional[str],
    hmac_key: str
) -> bool:
    """Constant-time check of a Base64 HMAC-SHA256 signature.

    Missing key or signature always fails.
    """
    if not hmac_key:
        logger.warning("HMAC key not configured - rejecting signature")
        return False
    if not signature:
        return False
    expected = compute_signature(message, hmac_key)
    return hmac.compare_digest(expected, signature.strip())
