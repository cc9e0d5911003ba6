"""Domain errors surfaced to callers of the engine's synchronous operations.

``NotFoundError`` and ``ConflictError`` are the only errors user-triggered
operations (rule CRUD, project item changes) raise on bad input. Channel and
recompute failures are never raised; they are logged where they happen.
"""


class ShelfspotError(Exception):
    """Base class for domain errors."""


class NotFoundError(ShelfspotError):
    """A referenced item, project, link or alert rule does not exist."""

    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(f"{entity} with ID {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(ShelfspotError):
    """A uniqueness constraint would be violated."""
