from typing import Any, Generic, Protocol, TypeVar

# Base registry implementation
T = TypeVar("T")


def _key(name: Any) -> str:
    # Enum members register under their value, not their repr
    return str(getattr(name, "value", name))


class Registry(Generic[T]):
    """Generic registry for pluggable implementations."""

    def __init__(self, name: str):
        self.name = name
        self._implementations: dict[str, T] = {}
        self._frozen = False

    def register(self, name: str, implementation: T) -> None:
        """Register an implementation with a given name."""
        if self._frozen:
            raise RuntimeError(
                f"Cannot register '{name}' in {self.name.lower()} registry: "
                "registry is frozen"
            )
        self._implementations[_key(name)] = implementation

    def get(self, name: str) -> T:
        """Get an implementation by name."""
        if _key(name) not in self._implementations:
            raise KeyError(
                f"No {self.name.lower()} implementation registered with name: {name}"
            )
        return self._implementations[_key(name)]

    def list(self) -> list[str]:
        """List all registered implementation names."""
        return list(self._implementations.keys())

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if the registry is frozen."""
        return self._frozen


# Job Registry - background processing handlers
class JobHandler(Protocol):
    """Protocol for job handlers that execute one kind of job."""

    async def handle(
        self,
        payload: dict[str, Any],
        config: Any,  # Settings shared by every handler
    ) -> dict[str, Any] | None:
        """
        Handle a background job.

        Args:
            payload: Job-specific parameters, passed through verbatim
            config: Shared application settings

        Returns:
            Optional result dictionary to store with the completed job
        """
        ...


class JobRegistry(Registry[JobHandler]):
    """Registry for background job handlers, keyed by job type."""

    def __init__(self):
        super().__init__("Job")

    def missing(self, job_types: list[str]) -> list[str]:
        """Return the job types that have no registered handler."""
        registered = set(self.list())
        return [
            _key(job_type) for job_type in job_types if _key(job_type) not in registered
        ]


# Global registry instance (singleton)
job_registry = JobRegistry()
