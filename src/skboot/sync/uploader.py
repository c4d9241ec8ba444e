"""
Uploader -- mirror a local tree into the object store.

Every regular file is written once per revision the push names. Files at
or below the size threshold are envelope-encrypted and stored under
``<key>.enc``; larger files are streamed raw under ``<key>``.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..envelope import ENC_SUFFIX, EnvelopeCodec, should_encrypt
from ..errors import ArgumentError, FilesystemError
from ..keys import make_key
from ..models import BootConfig, ObjectRecord, PushReport
from ..revisions import resolve_revisions
from ..storage import ObjectStore

logger = logging.getLogger("skboot.sync.uploader")


def _raise(exc: OSError) -> None:
    raise exc


def iter_files(root: Path) -> list[Path]:
    """List every regular file below ``root`` in a stable order.

    Raises:
        FilesystemError: If ``root`` or any directory below it is unreadable.
    """
    if not root.is_dir():
        raise FilesystemError("push:walk", str(root), "not a directory")

    files: list[Path] = []
    try:
        for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
            dirnames.sort()
            for fname in sorted(filenames):
                path = Path(dirpath) / fname
                if path.is_file():
                    files.append(path)
    except OSError as exc:
        raise FilesystemError("push:walk", str(root), str(exc)) from exc
    return files


class Uploader:
    """Pushes a directory tree to the store under one or more revisions.

    Args:
        config: Boot configuration (namespace, key id, threshold, dry-run).
        store: Destination object store.
        codec: Envelope codec for small files.
    """

    def __init__(
        self,
        config: BootConfig,
        store: ObjectStore,
        codec: EnvelopeCodec,
    ) -> None:
        self.config = config
        self.store = store
        self.codec = codec

    def push(self, root: Path, now: Optional[datetime] = None) -> PushReport:
        """Upload every file under ``root``.

        The first failure aborts the push. Objects written before it stay
        in the store.

        Args:
            root: Local directory to mirror.
            now: Clock reading used to name the snapshot revision.

        Returns:
            PushReport listing every object written.
        """
        if not self.config.kms_key_id:
            raise ArgumentError("push:kms", detail="a kms key id is required to push")

        revisions = resolve_revisions(self.config, now)
        report = PushReport(revisions=revisions, dry_run=self.config.dry_run)

        for path in iter_files(root):
            rel = path.relative_to(root).as_posix()
            for revision in revisions:
                report.objects.append(self._upload(path, rel, revision))

        logger.info(
            "Pushed %d object(s) to %s across revisions %s",
            len(report.objects), self.store.name, ", ".join(revisions),
        )
        return report

    def _upload(self, path: Path, rel: str, revision: str) -> ObjectRecord:
        key = make_key(self.config.env, self.config.s3_prefix, revision, rel)

        try:
            size = path.stat().st_size
        except OSError as exc:
            raise FilesystemError("push:stat", str(path), str(exc)) from exc

        encrypted = should_encrypt(size, self.config.max_encrypted_size)
        if encrypted:
            key += ENC_SUFFIX
        record = ObjectRecord(
            key=key, relative_path=rel, revision=revision,
            size=size, encrypted=encrypted,
        )

        if self.config.dry_run:
            logger.info("(dry-run) cp %s %s/%s", rel, self.store.name, key)
            return record

        logger.info("cp %s %s/%s", rel, self.store.name, key)
        if encrypted:
            try:
                data = path.read_bytes()
            except OSError as exc:
                raise FilesystemError("push:read_file", str(path), str(exc)) from exc
            envelope = self.codec.encrypt(data, self.config.kms_key_id, source=str(path))
            self.store.put(key, envelope.encode("ascii"))
        else:
            try:
                fh = open(path, "rb")
            except OSError as exc:
                raise FilesystemError("push:open", str(path), str(exc)) from exc
            with fh:
                self.store.put(key, fh)

        return record
