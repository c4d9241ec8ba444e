"""
SKBoot -- secret management for containers via S3, IAM, and KMS.

Push a local directory to an object store, small files envelope-encrypted
with a key-management service. Pull it back at container start and merge
the designated environment file into the process environment.

A smilinTux Open Source Project.
"""

import os

__version__ = "0.1.0"
__author__ = "smilinTux"

BOOT_CONFIG = os.environ.get("BOOT_CONFIG", "")
