"""
Job registry initialization.

Registers one handler per job type with a job registry.
"""

import importlib
import logging

from syncq.config.settings import Settings
from syncq.v1.core.registries import JobRegistry, job_registry
from syncq.v1.jobs.collaborators import Collaborators
from syncq.v1.jobs.handlers import (
    CleanupCacheHandler,
    IndexContentHandler,
    RefreshBoardsHandler,
    RefreshItemHandler,
    SyncIssueTrackerProjectHandler,
    SyncWikiSpaceHandler,
    UpdateSearchIndexHandler,
)
from syncq.v1.jobs.models import JobType

logger = logging.getLogger(__name__)

HANDLER_CLASSES = {
    JobType.SYNC_ISSUE_TRACKER_PROJECT: SyncIssueTrackerProjectHandler,
    JobType.SYNC_WIKI_SPACE: SyncWikiSpaceHandler,
    JobType.REFRESH_ITEM: RefreshItemHandler,
    JobType.INDEX_CONTENT: IndexContentHandler,
    JobType.CLEANUP_CACHE: CleanupCacheHandler,
    JobType.REFRESH_BOARDS: RefreshBoardsHandler,
    JobType.UPDATE_SEARCH_INDEX: UpdateSearchIndexHandler,
}


def load_collaborators(settings: Settings) -> Collaborators:
    """Build collaborators from the configured ``module:callable`` factory."""
    if not settings.collaborators_factory:
        logger.warning(
            "No collaborators configured; sync, refresh, index and cleanup jobs will fail"
        )
        return Collaborators()

    module_name, _, attr = settings.collaborators_factory.partition(":")
    if not attr:
        raise ValueError(
            "COLLABORATORS_FACTORY must look like 'package.module:callable', "
            f"got: {settings.collaborators_factory}"
        )

    factory = getattr(importlib.import_module(module_name), attr)
    collaborators = factory(settings)
    if not isinstance(collaborators, Collaborators):
        raise TypeError(
            f"{settings.collaborators_factory} returned {type(collaborators).__name__}, "
            "expected Collaborators"
        )
    return collaborators


def register_job_handlers(
    collaborators: Collaborators | None = None,
    registry: JobRegistry | None = None,
) -> JobRegistry:
    """Register a handler for every job type and return the frozen registry."""
    registry = registry if registry is not None else job_registry
    collaborators = collaborators or Collaborators()

    logger.info("Registering job handlers")

    for job_type, handler_class in HANDLER_CLASSES.items():
        registry.register(job_type, handler_class(collaborators))

    missing = registry.missing(list(JobType))
    if missing:
        raise RuntimeError(f"No handler registered for job types: {missing}")
    registry.freeze()

    logger.info(
        "Job handlers registered", extra={"registered_handlers": registry.list()}
    )
    return registry
