"""
Project constants definitions
"""

# ============================================================
# Connection Defaults
# ============================================================

DEFAULT_SSH_PORT = 22
DEFAULT_SSH_TIMEOUT = 10
DEFAULT_KEEPALIVE_INTERVAL = 30
LOOPBACK_HOST = "127.0.0.1"

# ============================================================
# Listing Cache
# ============================================================

DEFAULT_CACHE_CAPACITY = 5

# ============================================================
# Transfer Engine
# ============================================================

DEFAULT_BUFFER_SIZE = 81920  # 80 KiB
DEFAULT_VERIFY_THRESHOLD = 1024 * 1024  # 1 MiB
DEFAULT_MAX_CONCURRENCY = 3
DEFAULT_POLL_INTERVAL = 0.2
DEFAULT_HASH_ALGORITHM = "md5"
UNKNOWN_TOTAL = -1

# Remote hashing commands per algorithm
REMOTE_HASH_COMMANDS = {
    "md5": "md5sum",
    "sha1": "sha1sum",
    "sha256": "sha256sum",
}

# ============================================================
# Remote Helpers
# ============================================================

DEFAULT_LOG_TAIL_LINES = 500
STATUS_SPLIT_MARKER = "SPLIT"

# Local or target name used when the remote root itself is transferred
ROOT_ENTRY_NAME = "root"

# ============================================================
# Local State
# ============================================================

DEFAULT_CONFIG_PATH = "~/.remotefs/config.toml"
DEFAULT_INVENTORY_PATH = "~/.remotefs/inventory.toml"
DEFAULT_KNOWN_HOSTS_PATH = "~/.remotefs/known_hosts"
DEFAULT_LOG_DIR = "~/.remotefs/logs"
ENV_PREFIX = "REMOTEFS_"
SECRET_ENV_PREFIX = "REMOTEFS_SECRET_"
