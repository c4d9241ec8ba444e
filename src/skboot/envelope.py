"""
Envelope codec -- small files travel as base64 KMS ciphertext.

A file at or below the size threshold is encrypted with the key-management
service and stored as base64 text under its key plus ``.enc``. Larger files
exceed the KMS payload ceiling and are stored raw. The suffix is the only
signal a pull uses to choose the decrypt path.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Union

from .errors import EnvelopeDecodeError, EnvelopeDecryptError, EnvelopeEncryptError
from .kms import KeyManager, KeyManagerError
from .models import DEFAULT_MAX_ENCRYPTED_SIZE

logger = logging.getLogger("skboot.envelope")

ENC_SUFFIX = ".enc"


def should_encrypt(size: int, threshold: int = DEFAULT_MAX_ENCRYPTED_SIZE) -> bool:
    """Return True when a file of ``size`` bytes goes through the envelope."""
    return size <= threshold


def is_envelope_key(key: str) -> bool:
    """Return True when ``key`` carries the encryption marker."""
    return key.endswith(ENC_SUFFIX)


def strip_marker(key: str) -> str:
    """Remove a trailing encryption marker, leaving other keys untouched."""
    if is_envelope_key(key):
        return key[: -len(ENC_SUFFIX)]
    return key


class EnvelopeCodec:
    """Turns plaintext into storable envelope text and back.

    Args:
        kms: Key-management backend performing the actual crypto.
    """

    def __init__(self, kms: KeyManager) -> None:
        self.kms = kms

    def encrypt(self, plaintext: bytes, key_id: str, source: str = "") -> str:
        """Encrypt ``plaintext`` and return base64 envelope text.

        Args:
            plaintext: Raw file contents.
            key_id: Key-management key identifier.
            source: File or key name used to tag errors.

        Raises:
            EnvelopeEncryptError: If the key-management call fails.
        """
        try:
            ciphertext = self.kms.encrypt(key_id, plaintext)
        except KeyManagerError as exc:
            raise EnvelopeEncryptError("envelope:encrypt", source, str(exc)) from exc
        return base64.b64encode(ciphertext).decode("ascii")

    def decrypt(self, envelope: Union[str, bytes], source: str = "") -> bytes:
        """Reverse :meth:`encrypt`.

        Args:
            envelope: Stored envelope text (str or ASCII bytes).
            source: File or key name used to tag errors.

        Returns:
            The original plaintext bytes.

        Raises:
            EnvelopeDecodeError: If the envelope is not valid base64.
            EnvelopeDecryptError: If the key-management service rejects it.
        """
        if isinstance(envelope, str):
            try:
                envelope = envelope.encode("ascii")
            except UnicodeEncodeError as exc:
                raise EnvelopeDecodeError(
                    "envelope:decode", source, "envelope is not ASCII text"
                ) from exc
        try:
            ciphertext = base64.b64decode(envelope.strip(), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise EnvelopeDecodeError("envelope:decode", source, str(exc)) from exc

        try:
            return self.kms.decrypt(ciphertext)
        except KeyManagerError as exc:
            raise EnvelopeDecryptError("envelope:decrypt", source, str(exc)) from exc
