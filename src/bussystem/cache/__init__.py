"""Disk-based payload caching for bussystem.

This package provides :class:`ResponseCache`, a :mod:`diskcache` store with
per-entry expiry, and :func:`make_key`, the deterministic cache-key
derivation shared by the caching wrapper and cache invalidation.
"""

from bussystem.cache.cache import ResponseCache, canonical_parameters, make_key

__all__ = ["ResponseCache", "canonical_parameters", "make_key"]
