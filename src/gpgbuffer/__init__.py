"""
gpgbuffer: transparent editing of GPG-encrypted documents.

Decrypt on load, re-encrypt on save, keep the working copy in memory.
Recipients, cipher, armor and mode are discovered from the ciphertext
and carried forward to the next write.
"""

import os

__version__ = "0.1.0"

CONFIG_PATH = os.environ.get("GPGBUFFER_CONFIG", "~/.config/gpgbuffer/config.yaml")
