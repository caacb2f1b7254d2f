"""
System Constants and Enumerations

This module defines system-wide constants and enumerations used across
the badge storage layer.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for magic numbers
- Type-safe enums for state management

Author: System Architect
Date: 2026-01-12
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Processing stages used as the ``stage=`` field of log events.

    Format: {AREA}.{SEQUENCE}_{DESCRIPTIVE_NAME}
    """

    # Connection lifecycle
    CONN_CONNECTING = "CONN.1_CONNECTING"
    CONN_CONNECTED = "CONN.2_CONNECTED"
    CONN_FAILED = "CONN.3_CONNECT_FAILED"
    CONN_RECONNECT = "CONN.4_RECONNECT_SCHEDULED"
    CONN_HEARTBEAT = "CONN.5_HEARTBEAT"
    CONN_DISCONNECTED = "CONN.6_DISCONNECTED"
    CONN_OPERATION = "CONN.7_OPERATION"

    # Cache service
    CACHE_GET = "CACHE.1_GET"
    CACHE_SET = "CACHE.2_SET"
    CACHE_DELETE = "CACHE.3_DELETE"
    CACHE_CLEAR = "CACHE.4_CLEAR"
    CACHE_SWEEP = "CACHE.5_SWEEP"

    # Storage service
    STORE_GET = "STORE.1_GET"
    STORE_SET = "STORE.2_SET"
    STORE_FALLBACK = "STORE.3_FALLBACK"
    STORE_DURABILITY_DEGRADED = "STORE.4_DURABILITY_DEGRADED"
    STORE_DELETE = "STORE.5_DELETE"
    STORE_SWEEP = "STORE.6_EXPIRED_SWEEP"

    # Cross-cutting
    RETRY = "R.1_RETRY"
    BACKGROUND = "R.2_BACKGROUND_WRITE"
    ACCESSOR = "A.1_ACCESSOR"
    HTTP_CACHE = "H.1_HTTP_CACHE"
    INITIALIZATION = "0.0_INITIALIZATION"
    SHUTDOWN = "9.0_SHUTDOWN"


# ============================================================================
# Storage Strategies
# ============================================================================


class StorageStrategy(str, Enum):
    """
    Storage strategy names as they appear in configuration.

    CACHE_ONLY: volatile cache only
    PERSISTENT_ONLY: primary persistent store only
    HYBRID: cache first, then primary, then backup
    """

    CACHE_ONLY = "cache_only"
    PERSISTENT_ONLY = "persistent_only"
    HYBRID = "hybrid"


class DurabilityPolicy(str, Enum):
    """
    Minimum durability a HYBRID write must reach to report success.
    """

    BEST_EFFORT = "best_effort"
    REQUIRE_PERSISTENT = "require_persistent"


class FallbackMode(str, Enum):
    """
    Degraded operating state reported by the storage service.
    """

    NONE = "none"
    PRIMARY = "primary"
    BACKUP = "backup"
    CACHE = "cache"
    UNAVAILABLE = "unavailable"


# ============================================================================
# Key Scheme
# ============================================================================

KEY_DELIMITER = ":"
KEY_PART_SANITIZE_PATTERN = r"[^a-zA-Z0-9_.-]"

NAMESPACE_GITHUB = "github"
NAMESPACE_LEETCODE = "LEETCODE"
NAMESPACE_CSDN = "csdn"
NAMESPACE_JUEJIN = "juejin"
NAMESPACE_BILIBILI = "bilibili"
NAMESPACE_HTTP = "http"


# ============================================================================
# HTTP Headers
# ============================================================================

HEADER_REQUEST_ID = "X-Request-ID"
HEADER_CACHE_STATUS = "X-Cache-Status"
HEADER_CACHE_KEY = "X-Cache-Key"
HEADER_CACHE_CLEAR_COUNT = "X-Cache-Clear-Count"
HEADER_CACHE_GROUP_CLEAR_COUNT = "X-Cache-Group-Clear-Count"

# Response headers copied into cached HTTP entries
CACHEABLE_RESPONSE_HEADERS = (
    "content-type",
    "access-control-allow-origin",
    "x-powered-by",
)
