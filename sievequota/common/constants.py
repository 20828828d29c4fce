"""Constants for SieveQuota."""

# Default Redis URL
DEFAULT_REDIS_URL = "redis://localhost:6379/0"

# Prefix prepended to every key the ledgers write
DEFAULT_KEY_PREFIX = "sieve:"

# Per-operation store timeout (seconds)
DEFAULT_OPERATION_TIMEOUT = 10.0

# File store flush period (seconds)
DEFAULT_SAVE_INTERVAL = 5.0

# How long the file store waits for another holder of the ledger file (seconds)
DEFAULT_LOCK_TIMEOUT = 30.0

# Page size used when scanning keys
SCAN_BATCH_SIZE = 100

# Config directory name
CONFIG_DIR_NAME = ".sievequota"


# Logical tables. Keys are laid out as <prefix><table>:<partition>:<column>


class ClusterQuotaTable:
    TABLE_NAME = "sieve_cluster_quota"
    NAME = "name"
    VALUE = "value"
    DEFAULT_NAME = "default"


class UserQuotaTable:
    TABLE_NAME = "sieve_quota"
    USER_NAME = "user_name"
    QUOTA = "quota"


class SpaceTable:
    TABLE_NAME = "sieve_space"
    USER_NAME = "user_name"
    SPACE_USED = "space_used"
