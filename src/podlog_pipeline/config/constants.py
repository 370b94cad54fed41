"""
Constants for CloudWatch Logs quotas, pagination bounds and storage layout.
"""

# =============================================================================
# CloudWatch Logs API quotas
# =============================================================================

# Requests per second, per API category.
# https://docs.aws.amazon.com/AmazonCloudWatch/latest/logs/cloudwatch_limits_cwl.html
#
# DescribeLogGroups / DescribeLogStreams share the listing budget,
# GetLogEvents has its own, higher budget.
LISTING_REQUESTS_PER_SECOND = 10
EVENT_REQUESTS_PER_SECOND = 30

# botocore transport settings for the logs client
API_TIMEOUT_SECONDS = 30
API_TRANSPORT_MAX_ATTEMPTS = 3

# =============================================================================
# Pagination bounds
# =============================================================================

MAX_PAGINATION_DEPTH = 1000  # Pages per walk before the walk is an error
MAX_LISTING_RESULTS = 10_000  # Items per listing before the walk is truncated

# =============================================================================
# Sync engine
# =============================================================================

# Sized to the single-writer SQLite store, not to the API quota
DEFAULT_MAX_WORKERS = 3

# Log groups created by Container Insights for application logs
CONTAINER_INSIGHTS_GROUP_PATTERN = r"/aws/containerinsights/.+/application"

# =============================================================================
# Storage
# =============================================================================

DEFAULT_DB_FILENAME = ".podlogs.db"

# SQLite busy handling
DEFAULT_STORAGE_MAX_ATTEMPTS = 3
DEFAULT_STORAGE_BASE_DELAY_MS = 10
DEFAULT_SQLITE_TIMEOUT_SECONDS = 5.0

# SQLite table names
TABLE_LOGS = "logs"
