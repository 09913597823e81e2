"""
Interfaces of the services that job handlers call into.

The issue tracker, wiki, content cache and search indexer live outside this
package. Handlers depend only on these protocols; the application wires in
concrete implementations through :class:`Collaborators`.
"""

from dataclasses import dataclass
from typing import Any, Protocol


class IssueTrackerClient(Protocol):
    """Protocol for issue tracker REST clients."""

    async def search_issues(self, project_key: str) -> list[dict[str, Any]]:
        """Return every issue of a project."""
        ...

    async def get_issue(self, item_key: str) -> dict[str, Any] | None:
        """Return a single issue, or None if it does not exist."""
        ...

    async def get_boards(self, project_key: str) -> list[dict[str, Any]]:
        """Return the boards attached to a project."""
        ...


class WikiClient(Protocol):
    """Protocol for wiki REST clients."""

    async def get_space_pages(self, space_key: str) -> list[dict[str, Any]]:
        """Return every page of a space."""
        ...


class ContentCache(Protocol):
    """Protocol for the local content cache."""

    async def save_issue(self, issue: dict[str, Any]) -> None:
        ...

    async def save_page(self, page: dict[str, Any]) -> None:
        ...

    async def get_content(self, content_id: str) -> dict[str, Any] | None:
        ...

    async def purge_older_than(self, cutoff_ms: int) -> int:
        """Delete entries last synced before ``cutoff_ms``; return the count."""
        ...


class SearchIndexer(Protocol):
    """Protocol for the full-text search layer."""

    async def index_documents(self, documents: list[dict[str, Any]]) -> int:
        """Index documents and return how many were accepted."""
        ...

    async def refresh(self, force: bool = False) -> dict[str, Any]:
        ...


@dataclass
class Collaborators:
    """External services available to job handlers; unset ones are unavailable."""

    tracker: IssueTrackerClient | None = None
    wiki: WikiClient | None = None
    cache: ContentCache | None = None
    indexer: SearchIndexer | None = None


class CollaboratorUnavailable(RuntimeError):
    """Raised by a handler whose required collaborator is not configured."""

    def __init__(self, name: str):
        super().__init__(f"{name} is not configured")
        self.name = name
