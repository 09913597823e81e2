"""
Job handlers for the built-in job types.

Each handler implements the JobHandler protocol, validates its own payload,
and delegates the actual work to an external collaborator. Exceptions are
left to propagate; the worker turns them into retry or failure decisions.
"""

import logging
from typing import Any

from syncq.config.settings import Settings
from syncq.v1.jobs.collaborators import CollaboratorUnavailable, Collaborators
from syncq.v1.jobs.schemas import (
    CleanupCachePayload,
    IndexContentPayload,
    ItemPayload,
    ProjectPayload,
    SpacePayload,
    UpdateSearchIndexPayload,
)
from syncq.v1.jobs.service import epoch_ms

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


class CollaboratorHandler:
    """Base for handlers that call into external services."""

    def __init__(self, collaborators: Collaborators):
        self.collaborators = collaborators

    def _require(self, name: str) -> Any:
        collaborator = getattr(self.collaborators, name)
        if collaborator is None:
            raise CollaboratorUnavailable(name)
        return collaborator


class SyncIssueTrackerProjectHandler(CollaboratorHandler):
    """
    Fetch every issue of a project and upsert it into the content cache.

    Payload expected:
    {
        "project_key": "ENG"
    }
    """

    async def handle(
        self, payload: dict[str, Any], config: Settings
    ) -> dict[str, Any] | None:
        params = ProjectPayload.model_validate(payload)
        tracker = self._require("tracker")
        cache = self._require("cache")

        issues = await tracker.search_issues(params.project_key)
        for issue in issues:
            await cache.save_issue(issue)

        logger.info(
            "Project synced",
            extra={"project_key": params.project_key, "synced": len(issues)},
        )
        return {"project_key": params.project_key, "synced": len(issues)}


class SyncWikiSpaceHandler(CollaboratorHandler):
    """
    Fetch every page of a wiki space and upsert it into the content cache.

    Payload expected:
    {
        "space_key": "ENG"
    }
    """

    async def handle(
        self, payload: dict[str, Any], config: Settings
    ) -> dict[str, Any] | None:
        params = SpacePayload.model_validate(payload)
        wiki = self._require("wiki")
        cache = self._require("cache")

        pages = await wiki.get_space_pages(params.space_key)
        for page in pages:
            await cache.save_page(page)

        logger.info(
            "Space synced", extra={"space_key": params.space_key, "synced": len(pages)}
        )
        return {"space_key": params.space_key, "synced": len(pages)}


class RefreshItemHandler(CollaboratorHandler):
    """Re-fetch one issue and upsert it; a missing issue fails the attempt."""

    async def handle(
        self, payload: dict[str, Any], config: Settings
    ) -> dict[str, Any] | None:
        params = ItemPayload.model_validate(payload)
        tracker = self._require("tracker")
        cache = self._require("cache")

        issue = await tracker.get_issue(params.item_key)
        if issue is None:
            raise LookupError(f"Issue {params.item_key} not found")

        await cache.save_issue(issue)
        return {"item_key": params.item_key, "refreshed": True}


class IndexContentHandler(CollaboratorHandler):
    """
    Push cached content records into the search index.

    Payload expected:
    {
        "content_ids": ["jira:ENG-1", "confluence:12345"]
    }
    """

    async def handle(
        self, payload: dict[str, Any], config: Settings
    ) -> dict[str, Any] | None:
        params = IndexContentPayload.model_validate(payload)
        cache = self._require("cache")
        indexer = self._require("indexer")

        documents = []
        missing = []
        for content_id in params.content_ids:
            content = await cache.get_content(content_id)
            if content is None:
                missing.append(content_id)
            else:
                documents.append(content)

        if missing:
            logger.warning(
                "Content missing from cache, skipped",
                extra={"missing_ids": missing},
            )

        indexed = await indexer.index_documents(documents) if documents else 0
        return {"indexed": indexed, "missing": missing}


class CleanupCacheHandler(CollaboratorHandler):
    """Purge cache entries older than ``older_than_days`` (default 30)."""

    async def handle(
        self, payload: dict[str, Any], config: Settings
    ) -> dict[str, Any] | None:
        params = CleanupCachePayload.model_validate(payload)
        cache = self._require("cache")

        cutoff_ms = epoch_ms() - params.older_than_days * DAY_MS
        cleaned = await cache.purge_older_than(cutoff_ms)

        logger.info(
            "Cache cleanup completed",
            extra={"cleaned": cleaned, "older_than_days": params.older_than_days},
        )
        return {"cleaned": cleaned, "cutoff_ms": cutoff_ms}


class RefreshBoardsHandler(CollaboratorHandler):
    """Reload a project's boards; without a tracker this is a no-op."""

    async def handle(
        self, payload: dict[str, Any], config: Settings
    ) -> dict[str, Any] | None:
        params = ProjectPayload.model_validate(payload)
        tracker = self.collaborators.tracker
        if tracker is None:
            return {"project_key": params.project_key, "refreshed": False, "boards": 0}

        boards = await tracker.get_boards(params.project_key)
        return {"project_key": params.project_key, "refreshed": True, "boards": len(boards)}


class UpdateSearchIndexHandler(CollaboratorHandler):
    """Ask the search layer to refresh itself; without an indexer this is a no-op."""

    async def handle(
        self, payload: dict[str, Any], config: Settings
    ) -> dict[str, Any] | None:
        params = UpdateSearchIndexPayload.model_validate(payload)
        indexer = self.collaborators.indexer
        if indexer is None:
            return {"updated": False, "force": params.force}

        details = await indexer.refresh(force=params.force)
        return {"updated": True, "force": params.force, "details": details}
