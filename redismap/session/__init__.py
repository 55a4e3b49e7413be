"""
Session Module: Handle Identity and Lifetime
============================================

Provides:
- KeyRegistry: minting and validation of "prefix:id" identifiers
- LifecycleManager: the per-handle TTL renewal task
"""

from redismap.session.lease import LifecycleManager
from redismap.session.registry import KeyRegistry

__all__ = ["KeyRegistry", "LifecycleManager"]
