"""
Organization Platform

Multi-tenant organization management: metadata, per-organization storage
partitions, admin authentication, caching and rate limiting.
"""

__version__ = "0.1.0"
