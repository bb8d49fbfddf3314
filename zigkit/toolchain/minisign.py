"""
Minisign signature verification.

Release archives are signed with minisign. A public key is the base64 of
``b"Ed" + key_id (8 bytes) + ed25519 public key (32 bytes)``. A signature
file is::

    untrusted comment: <free text>
    base64(<algorithm (2 bytes)> + key_id (8 bytes) + signature (64 bytes))
    trusted comment: <free text>
    base64(global signature (64 bytes))

The algorithm is ``Ed`` (legacy, the message is signed directly) or ``ED``
(the BLAKE2b-512 digest of the message is signed). The global signature covers
``signature || trusted comment`` so the trusted comment cannot be swapped.

``verify`` is a pure function: it performs no I/O and never raises on
malformed input.
"""

import base64
import binascii
import hashlib
import logging
from dataclasses import dataclass
from typing import Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from zigkit.core.exceptions import MinisignFormatError

logger = logging.getLogger(__name__)

UNTRUSTED_COMMENT_PREFIX = "untrusted comment:"
TRUSTED_COMMENT_PREFIX = "trusted comment: "

KEY_ALGORITHM = b"Ed"
LEGACY_ALGORITHM = b"Ed"
PREHASHED_ALGORITHM = b"ED"

KEY_ID_SIZE = 8
PUBLIC_KEY_SIZE = 32
SIGNATURE_SIZE = 64


@dataclass(frozen=True)
class PublicKey:
    """Parsed minisign public key."""

    algorithm: bytes
    key_id: bytes
    key: bytes

    @property
    def key_id_hex(self) -> str:
        # minisign displays key ids as little-endian hex
        return self.key_id[::-1].hex().upper()


@dataclass(frozen=True)
class Signature:
    """Parsed minisign signature."""

    algorithm: bytes
    key_id: bytes
    signature: bytes
    trusted_comment: Optional[bytes] = None
    global_signature: Optional[bytes] = None


def _decode_base64(line: str, expected_size: int, what: str) -> bytes:
    try:
        raw = base64.b64decode(line.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise MinisignFormatError(f"Invalid base64 in {what}: {e}") from e
    if len(raw) != expected_size:
        raise MinisignFormatError(
            f"Invalid {what} length: expected {expected_size} bytes, got {len(raw)}"
        )
    return raw


def _as_text(data: Union[str, bytes], what: str) -> str:
    if isinstance(data, str):
        return data
    if isinstance(data, (bytes, bytearray)):
        try:
            return bytes(data).decode("utf-8")
        except UnicodeDecodeError as e:
            raise MinisignFormatError(f"{what} is not valid UTF-8") from e
    raise MinisignFormatError(f"{what} must be text or bytes")


def parse_public_key(data: Union[str, bytes]) -> PublicKey:
    """
    Parse a minisign public key.

    Accepts either the bare base64 line or the two-line ``.pub`` file form
    with its leading untrusted comment.

    Raises:
        MinisignFormatError: If the key is malformed
    """
    text = _as_text(data, "Public key")
    lines = [
        line.strip()
        for line in text.splitlines()
        if line.strip() and not line.strip().startswith(UNTRUSTED_COMMENT_PREFIX)
    ]
    if len(lines) != 1:
        raise MinisignFormatError("Public key must contain exactly one key line")

    raw = _decode_base64(
        lines[0], 2 + KEY_ID_SIZE + PUBLIC_KEY_SIZE, "public key"
    )
    algorithm = raw[:2]
    if algorithm != KEY_ALGORITHM:
        raise MinisignFormatError(f"Unsupported public key algorithm: {algorithm!r}")

    return PublicKey(
        algorithm=algorithm,
        key_id=raw[2 : 2 + KEY_ID_SIZE],
        key=raw[2 + KEY_ID_SIZE :],
    )


def parse_signature(data: Union[str, bytes]) -> Signature:
    """
    Parse a minisign signature file.

    The untrusted comment line is optional. A trusted comment line without
    the global signature that should follow it is accepted and treated as
    absent.

    Raises:
        MinisignFormatError: If the signature is malformed
    """
    text = _as_text(data, "Signature")
    lines = [line.rstrip("\r") for line in text.splitlines()]
    while lines and not lines[-1].strip():
        lines.pop()

    if lines and lines[0].startswith(UNTRUSTED_COMMENT_PREFIX):
        lines = lines[1:]
    if not lines:
        raise MinisignFormatError("Signature is empty")

    raw = _decode_base64(lines[0], 2 + KEY_ID_SIZE + SIGNATURE_SIZE, "signature")
    algorithm = raw[:2]
    if algorithm not in (LEGACY_ALGORITHM, PREHASHED_ALGORITHM):
        raise MinisignFormatError(f"Unsupported signature algorithm: {algorithm!r}")

    trusted_comment = None
    global_signature = None
    if len(lines) >= 2:
        if not lines[1].startswith(TRUSTED_COMMENT_PREFIX):
            raise MinisignFormatError("Expected a trusted comment line")
        if len(lines) >= 3:
            trusted_comment = lines[1][len(TRUSTED_COMMENT_PREFIX) :].encode("utf-8")
            global_signature = _decode_base64(
                lines[2], SIGNATURE_SIZE, "global signature"
            )
        else:
            logger.debug("Trusted comment without global signature, ignoring it")

    return Signature(
        algorithm=algorithm,
        key_id=raw[2 : 2 + KEY_ID_SIZE],
        signature=raw[2 + KEY_ID_SIZE :],
        trusted_comment=trusted_comment,
        global_signature=global_signature,
    )


def verify(
    public_key: Union[PublicKey, str, bytes],
    message: bytes,
    signature: Union[Signature, str, bytes],
) -> bool:
    """
    Check that ``signature`` is a valid minisign signature of ``message``.

    Args:
        public_key: Parsed key or minisign public key text
        message: Exact bytes that were signed
        signature: Parsed signature or minisign signature file contents

    Returns:
        True only if the key ids match, the signature verifies over the
        message and, when present, the global signature verifies over the
        trusted comment. Malformed input returns False.

    Example:
        >>> verify(ZIG_PUBLIC_KEY, archive_bytes, minisig_bytes)
        True
    """
    if not isinstance(message, (bytes, bytearray, memoryview)):
        return False

    try:
        if not isinstance(public_key, PublicKey):
            public_key = parse_public_key(public_key)
        if not isinstance(signature, Signature):
            signature = parse_signature(signature)
    except MinisignFormatError as e:
        logger.debug(f"Malformed minisign input: {e}")
        return False

    if signature.key_id != public_key.key_id:
        logger.warning(
            f"Signature key id {signature.key_id[::-1].hex().upper()} does not match "
            f"trusted key id {public_key.key_id_hex}"
        )
        return False

    try:
        verifier = Ed25519PublicKey.from_public_bytes(public_key.key)
    except ValueError as e:
        logger.debug(f"Unusable public key: {e}")
        return False

    if signature.algorithm == PREHASHED_ALGORITHM:
        payload = hashlib.blake2b(bytes(message), digest_size=64).digest()
    else:
        payload = bytes(message)

    try:
        verifier.verify(signature.signature, payload)
    except InvalidSignature:
        return False

    if signature.global_signature is not None:
        try:
            verifier.verify(
                signature.global_signature,
                signature.signature + signature.trusted_comment,
            )
        except InvalidSignature:
            logger.debug("Trusted comment signature is invalid")
            return False

    return True


__all__ = [
    "PublicKey",
    "Signature",
    "parse_public_key",
    "parse_signature",
    "verify",
]
