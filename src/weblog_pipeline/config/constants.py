"""
Constants for log ingestion, retention and scheduling.
"""

# =============================================================================
# Ingestion
# =============================================================================

# Records accumulated before a batch is handed to the storage backend
BATCH_SIZE = 100

# Lines timestamped earlier than now - MAX_RECORD_AGE_DAYS are dropped at
# ingestion time, independently of the store's own retention job
MAX_RECORD_AGE_DAYS = 31

# Supported log types (SiteConfig.log_type)
LOG_TYPE_NGINX = "nginx"
LOG_TYPE_JSON = "json"
SUPPORTED_LOG_TYPES = frozenset([LOG_TYPE_NGINX, LOG_TYPE_JSON])
DEFAULT_LOG_TYPE = LOG_TYPE_NGINX

# Scan state file, relative to the data directory
SCAN_STATE_FILENAME = "nginx_scan_state.json"

# =============================================================================
# Scheduling and retention
# =============================================================================

DEFAULT_TASK_INTERVAL_SECONDS = 5 * 60

# Hour of day (local time) during which retention cleanup may run
DEFAULT_CLEANUP_HOUR = 2

# Stored rows older than this are removed by the retention cleanup
DEFAULT_RETENTION_DAYS = 45

# Time allowed for an in-flight pass to finish after a shutdown signal
DEFAULT_SHUTDOWN_GRACE_SECONDS = 1.0

# =============================================================================
# Operational log
# =============================================================================

DEFAULT_LOG_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_LOG_BACKUP_COUNT = 5

# =============================================================================
# Storage
# =============================================================================

TABLE_ACCESS_LOGS = "access_logs"
