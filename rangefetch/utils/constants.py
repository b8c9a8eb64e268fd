"""Constants for rangefetch."""

# Application constants
DEFAULT_USER_AGENT = "rangefetch/1.0"
DEFAULT_ENV_PREFIX = "RANGEFETCH_"

# File size constants
BYTES_PER_KB = 1024
BYTES_PER_MB = 1024 * 1024
BYTES_PER_GB = 1024 * 1024 * 1024

# Transfer constants
DEFAULT_CHUNK_SIZE = 8 * BYTES_PER_MB
DEFAULT_CONCURRENCY_LIMIT = 8
MIN_CONCURRENCY_LIMIT = 1
MAX_CONCURRENCY_LIMIT = 64
VERIFY_BLOCK_SIZE = BYTES_PER_MB
STREAM_READ_SIZE = 64 * BYTES_PER_KB

# Retry constants
DEFAULT_MAX_RETRIES_PER_CHUNK = 3
# Each exhausted fetch counts once against DEFAULT_MAX_RETRIES_PER_CHUNK
DEFAULT_FETCH_ATTEMPTS = 1
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_INITIAL_BACKOFF = 0.5
DEFAULT_MAX_BACKOFF = 30.0
BACKOFF_MULTIPLIER = 2.0
BACKOFF_JITTER_RATIO = 0.25

# Digest constants
DEFAULT_DIGEST_ALGORITHM = "sha512"

# Sidecar files written next to the destination
RESUME_STATE_SUFFIX = ".rfstate.json"
INVALID_MARKER_SUFFIX = ".invalid"
RESUME_STATE_VERSION = "1.0"

# Progress update intervals
CHECKPOINT_SAVE_INTERVAL = 30.0  # seconds

# Disk space headroom when preallocating destinations
DISK_SPACE_BUFFER_PERCENT = 5.0

# Logging constants
LOG_FORMAT_CONSOLE = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

LOG_FORMAT_FILE = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | "
    "{name}:{function}:{line} | {message}"
)

# Error messages
ERROR_NOT_FOUND = "Object not found"
ERROR_ACCESS_DENIED = "Access denied"
ERROR_INVALID_RANGE = "Requested range not satisfiable"
ERROR_INSUFFICIENT_DISK_SPACE = "Insufficient disk space"
