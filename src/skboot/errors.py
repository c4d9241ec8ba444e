"""
Error hierarchy for skboot.

Every failure is tagged with the stage that raised it and the file or
object key it concerned. Nothing here recovers or retries: the first
error aborts the whole push or pull.
"""

from __future__ import annotations

from typing import Optional


class BootError(Exception):
    """Base class for all skboot failures.

    Args:
        op: Short stage tag, e.g. ``push:put_object``.
        target: File path or object key the stage was working on.
        detail: Optional human-readable cause.
    """

    def __init__(
        self,
        op: str,
        target: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> None:
        self.op = op
        self.target = target
        self.detail = detail
        super().__init__(self._render())

    def _render(self) -> str:
        text = self.op
        if self.target:
            text += f" - {self.target}"
        if self.detail:
            text += f": {self.detail}"
        return text


class FilesystemError(BootError):
    """Open, read, write, or mkdir failed on the local tree."""


class CodecError(BootError):
    """The envelope could not be produced or reversed."""


class EnvelopeEncryptError(CodecError):
    """The key-management service refused to encrypt."""


class EnvelopeDecodeError(CodecError):
    """The stored body is not valid base64 text."""


class EnvelopeDecryptError(CodecError):
    """The key-management service rejected the ciphertext."""


class StoreError(BootError):
    """An object-store list, get, or put call failed."""


class EnvFileError(BootError):
    """The environment file could not be read."""


class ArgumentError(BootError):
    """A required option or argument is missing or invalid."""


class KeyNamespaceError(BootError):
    """An object key does not live under the expected namespace root."""
