"""
Downloader -- restore a revision from the object store.

Lists every object under the namespace root, fetches each one, and
either decrypts it (``.enc`` keys) or saves it verbatim. The decrypted
environment file is never written to disk; its variables go to the
environment sink instead.
"""

from __future__ import annotations

import logging
import posixpath
from contextlib import closing
from pathlib import Path
from typing import BinaryIO, MutableMapping, Optional

from ..envelope import EnvelopeCodec, is_envelope_key, strip_marker
from ..envfile import apply_env, parse_env
from ..errors import FilesystemError, KeyNamespaceError, StoreError
from ..keys import SEPARATOR, namespace_root, strip_root
from ..models import BootConfig, PullReport
from ..storage import ObjectStore

logger = logging.getLogger("skboot.sync.downloader")

COPY_CHUNK_SIZE = 64 * 1024


class Downloader:
    """Pulls one revision into a local directory.

    Args:
        config: Boot configuration (namespace, env file, dry-run).
        store: Source object store.
        codec: Envelope codec for ``.enc`` objects.
        env_sink: Where environment-file variables land. Defaults to
            ``os.environ``.
    """

    def __init__(
        self,
        config: BootConfig,
        store: ObjectStore,
        codec: EnvelopeCodec,
        env_sink: Optional[MutableMapping[str, str]] = None,
    ) -> None:
        self.config = config
        self.store = store
        self.codec = codec
        self.env_sink = env_sink
        self._env_target = (
            posixpath.normpath(config.env_file.strip(SEPARATOR))
            if config.env_file.strip(SEPARATOR)
            else None
        )

    def pull(self, root: Path) -> PullReport:
        """Download every object of the configured revision into ``root``.

        The first failure aborts the pull and names the failing key.

        Args:
            root: Local directory to restore into.

        Returns:
            PullReport with written paths and loaded variable names.
        """
        cfg = self.config
        ns_root = namespace_root(cfg.env, cfg.s3_prefix, cfg.revision)
        list_prefix = ns_root + SEPARATOR if ns_root else ""
        report = PullReport(revision=cfg.revision, dry_run=cfg.dry_run)

        keys = [k for k in self.store.list_keys(list_prefix) if not k.endswith(SEPARATOR)]
        self._check_collisions(keys)

        for key in keys:
            with closing(self.store.get(key)) as body:
                if is_envelope_key(key):
                    self._decrypt_and_save(root, key, body, report)
                else:
                    self._save(root, key, body, report)

        logger.info(
            "Pulled revision %s from %s: %d file(s), %d env var(s)",
            cfg.revision, self.store.name, len(report.written), len(report.env_keys),
        )
        return report

    def _relative(self, key: str) -> str:
        cfg = self.config
        return strip_root(key, cfg.env, cfg.s3_prefix, cfg.revision)

    def _check_collisions(self, keys: list[str]) -> None:
        """Refuse a revision where two keys restore to the same local path.

        A file that crossed the size threshold between pushes leaves both
        ``a.txt`` and ``a.txt.enc`` behind; neither can be trusted as current.
        """
        seen: dict[str, str] = {}
        for key in keys:
            rel = strip_marker(self._relative(key))
            other = seen.setdefault(rel, key)
            if other != key:
                raise KeyNamespaceError(
                    "pull:conflict", key, f"{other} and {key} both restore to {rel}"
                )

    @staticmethod
    def _read(key: str, body: BinaryIO, size: int = -1) -> bytes:
        from botocore.exceptions import BotoCoreError

        try:
            return body.read(size)
        except (BotoCoreError, OSError) as exc:
            raise StoreError("pull:read_body", key, str(exc)) from exc

    def _destination(self, root: Path, rel: str, key: str) -> Path:
        path = root / rel
        resolved_root = root.resolve()
        if resolved_root not in path.resolve().parents:
            raise KeyNamespaceError("pull:destination", key, "path escapes the target directory")
        return path

    def _decrypt_and_save(
        self, root: Path, key: str, body: BinaryIO, report: PullReport
    ) -> None:
        envelope = self._read(key, body)

        plaintext = self.codec.decrypt(envelope, source=key)
        rel = strip_marker(self._relative(key))
        path = self._destination(root, rel, key)

        if self._env_target is not None and rel == self._env_target:
            values = parse_env(plaintext, source=key)
            report.env_keys.extend(values)
            if self.config.dry_run:
                logger.info("(dry-run) loading %s into environment", key)
                return
            logger.info("loading %s into environment", key)
            apply_env(values, self.env_sink)
            return

        if self.config.dry_run:
            logger.info("(dry-run) saving %s/%s to %s", self.store.name, key, path)
            return

        logger.info("saving %s/%s to %s", self.store.name, key, path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(plaintext)
        except OSError as exc:
            raise FilesystemError("pull:write_file", str(path), str(exc)) from exc
        report.written.append(path)

    def _save(self, root: Path, key: str, body: BinaryIO, report: PullReport) -> None:
        path = self._destination(root, self._relative(key), key)

        if self.config.dry_run:
            logger.info("(dry-run) saving %s/%s to %s", self.store.name, key, path)
            return

        logger.info("saving %s/%s to %s", self.store.name, key, path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as out:
                while True:
                    chunk = self._read(key, body, COPY_CHUNK_SIZE)
                    if not chunk:
                        break
                    out.write(chunk)
        except OSError as exc:
            raise FilesystemError("pull:open_file", str(path), str(exc)) from exc
        report.written.append(path)
