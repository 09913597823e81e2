"""
Background job system.

This package provides:
- A SQLite-backed priority queue with atomic claiming
- Registry-based handlers, one per job type
- A sequential worker with exponential retry backoff
- A scheduler that enqueues recurring sync and maintenance jobs
"""
