"""
Sync Engine -- wires configuration to the store, KMS, and sync steps.

    skboot push       ->  walk dir -> encrypt small files -> put (stable + snapshot)
    skboot pull       ->  list revision -> get -> decrypt .enc -> write / load env
    skboot container  ->  pull into os.environ -> run the workload
"""

from __future__ import annotations

import logging
import os
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Any, MutableMapping, Optional, Sequence

import yaml
from pydantic import ValidationError

from ..envelope import EnvelopeCodec
from ..errors import ArgumentError
from ..kms import KeyManager, create_key_manager
from ..models import BootConfig, PullReport, PushReport
from ..storage import ObjectStore, create_store, parse_s3_url
from .downloader import Downloader
from .uploader import Uploader

logger = logging.getLogger("skboot.sync.engine")


def load_config(
    config_file: Optional[Path] = None,
    s3_url: Optional[str] = None,
    **overrides: Any,
) -> BootConfig:
    """Build a BootConfig from defaults, an optional YAML file, and overrides.

    Overrides whose value is None are ignored so unset CLI flags never mask
    file settings. ``s3_url`` wins over both for bucket and prefix.

    Args:
        config_file: YAML file with BootConfig fields.
        s3_url: ``s3://bucket/prefix`` shorthand.
        **overrides: BootConfig fields, typically from the CLI.

    Returns:
        Validated BootConfig.

    Raises:
        ArgumentError: If the file cannot be read or the values are invalid.
    """
    data: dict[str, Any] = {}
    if config_file:
        path = Path(config_file).expanduser()
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ArgumentError("config:load", str(path), str(exc)) from exc
        if not isinstance(data, dict):
            raise ArgumentError("config:load", str(path), "expected a mapping")

    data.update({k: v for k, v in overrides.items() if v is not None})

    if s3_url:
        data["s3_bucket"], data["s3_prefix"] = parse_s3_url(s3_url)

    try:
        return BootConfig(**data)
    except ValidationError as exc:
        raise ArgumentError("config:validate", detail=str(exc)) from exc


class SyncEngine:
    """Runs push, pull, and container boots for one configuration.

    Collaborators are built from the config unless injected, which is how
    tests swap in in-memory stores and fake key managers.

    Args:
        config: Boot configuration.
        store: Object store. Defaults to the configured backend.
        kms: Key manager. Defaults to the configured backend.
        env_sink: Target for environment-file variables. Defaults to
            ``os.environ``.
    """

    def __init__(
        self,
        config: BootConfig,
        store: Optional[ObjectStore] = None,
        kms: Optional[KeyManager] = None,
        env_sink: Optional[MutableMapping[str, str]] = None,
    ) -> None:
        self.config = config
        self.store = store or create_store(config)
        self.kms = kms or create_key_manager(config)
        self.env_sink = env_sink
        self.codec = EnvelopeCodec(self.kms)

    @property
    def root(self) -> Path:
        """Absolute local directory this engine syncs."""
        return self.config.dir.expanduser().resolve()

    def push(self, now: Optional[datetime] = None) -> PushReport:
        """Push the local directory to every configured revision."""
        uploader = Uploader(self.config, self.store, self.codec)
        return uploader.push(self.root, now=now)

    def pull(self) -> PullReport:
        """Pull the configured revision into the local directory."""
        downloader = Downloader(
            self.config, self.store, self.codec, env_sink=self.env_sink
        )
        return downloader.pull(self.root)

    def container(self, command: Sequence[str]) -> int:
        """Pull, then run ``command`` with the refreshed environment.

        Args:
            command: Program and arguments of the workload.

        Returns:
            The workload's exit code.

        Raises:
            ArgumentError: If ``command`` is empty or cannot be started.
        """
        self.pull()

        if not command:
            raise ArgumentError("container:args", detail="no command to run")

        env = dict(os.environ)
        if self.env_sink is not None:
            env.update(self.env_sink)
        logger.info("executing ... %s", " ".join(command))
        try:
            result = subprocess.run(list(command), env=env, check=False)
        except OSError as exc:
            raise ArgumentError("container:exec", command[0], str(exc)) from exc
        return result.returncode
