"""syncq - persistent background job queue, worker and sync scheduler."""
