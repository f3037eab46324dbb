"""
Core utilities shared across usermgmt.

This package hosts configuration helpers (env vars, storage paths, hook
policy) and the exception hierarchy used by adapters and services.
Adapters and services depend on these primitives instead of reading
os.environ directly.
"""
