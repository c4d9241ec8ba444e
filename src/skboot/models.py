"""
Configuration and result models for skboot.

One BootConfig describes a single push or pull: which namespace in the
store, which key encrypts, and which local directory mirrors it.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_MAX_ENCRYPTED_SIZE = 4000


class StoreBackendType(str, Enum):
    """Supported object-store backends."""

    S3 = "s3"
    LOCAL = "local"


class KmsBackendType(str, Enum):
    """Supported key-management backends."""

    AWS = "aws"
    LOCAL = "local"


class RevisionStrategy(str, Enum):
    """How a push names the revisions it writes.

    STABLE is the configured pointer revision (``latest``), overwritten on
    every push. SNAPSHOT is a timestamp tag that is never written twice.
    """

    STABLE = "stable"
    SNAPSHOT = "snapshot"


class BootConfig(BaseModel):
    """Complete configuration for a push, pull, or container run."""

    region: str = "us-east-1"
    env: str = "dev"
    env_file: str = "boot.env"
    revision: str = "latest"
    kms_key_id: Optional[str] = None
    s3_bucket: Optional[str] = None
    s3_prefix: str = ""
    dir: Path = Path(".")
    verbose: bool = False
    dry_run: bool = False

    max_encrypted_size: int = Field(default=DEFAULT_MAX_ENCRYPTED_SIZE, ge=0)
    revision_strategies: list[RevisionStrategy] = Field(
        default_factory=lambda: [RevisionStrategy.STABLE, RevisionStrategy.SNAPSHOT]
    )

    store_backend: StoreBackendType = StoreBackendType.S3
    kms_backend: KmsBackendType = KmsBackendType.AWS
    local_store_path: Optional[Path] = None
    local_kms_passphrase: Optional[str] = None


class ObjectRecord(BaseModel):
    """One object written during a push."""

    key: str
    relative_path: str
    revision: str
    size: int
    encrypted: bool


class PushReport(BaseModel):
    """Outcome of a push."""

    revisions: list[str] = Field(default_factory=list)
    objects: list[ObjectRecord] = Field(default_factory=list)
    dry_run: bool = False


class PullReport(BaseModel):
    """Outcome of a pull.

    ``env_keys`` lists the variable names taken from the environment file.
    Values are never recorded.
    """

    revision: str
    written: list[Path] = Field(default_factory=list)
    env_keys: list[str] = Field(default_factory=list)
    dry_run: bool = False
