"""
System-Wide Constants for redismap

All magic numbers and configuration defaults centralized here.

Timing:
- The renewal period is derived from the key TTL minus the slowest single
  remote call (pool wait + connect + socket timeout) and a one second
  margin, so a renewal delayed by every timeout still lands in time.

Author: redismap maintainers
License: MIT
"""

from typing import Final

# =============================================================================
# TIME UNITS
# =============================================================================
MINUTE_S: Final[int] = 60

# =============================================================================
# KEY LAYOUT
# =============================================================================
KEY_PREFIX: Final[str] = "redis-map"
COUNTER_SUFFIX: Final[str] = "-counter"

# Largest id a handle may carry (signed 32-bit maximum)
MAX_ID: Final[int] = 2**31 - 1

# =============================================================================
# LIFECYCLE
# =============================================================================
KEY_TTL_S: Final[int] = 30
COUNTER_TTL_S: Final[int] = 5 * MINUTE_S

# =============================================================================
# CONNECTION POOL
# =============================================================================
# Sized for ~10 concurrent handles per process
POOL_MAX_CONNECTIONS: Final[int] = 100
POOL_TIMEOUT_S: Final[float] = 5.0
CONNECT_TIMEOUT_S: Final[float] = 2.0
SOCKET_TIMEOUT_S: Final[float] = 5.0
POOL_HEALTH_CHECK_INTERVAL_S: Final[int] = 30

# Worst-case duration of one remote call
SLOWEST_CALL_S: Final[float] = POOL_TIMEOUT_S + CONNECT_TIMEOUT_S + SOCKET_TIMEOUT_S
RENEWAL_MARGIN_S: Final[float] = 1.0
RENEWAL_PERIOD_S: Final[float] = KEY_TTL_S - SLOWEST_CALL_S - RENEWAL_MARGIN_S

# =============================================================================
# SCAN
# =============================================================================
# HSCAN COUNT hint; Redis returns small listpack-encoded hashes in one reply
SCAN_COUNT: Final[int] = 100
