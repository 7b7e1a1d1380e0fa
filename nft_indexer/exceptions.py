"""
Indexer error types.
"""


class IndexerError(Exception):
    """Base error for the marketplace indexer"""


class ConfigError(IndexerError):
    """Raised when the indexer configuration is missing or malformed"""


class EntityNotFoundError(IndexerError):
    """A handler required an entity that is not in the store.

    Points at dropped or out-of-order events, so the event cannot be
    projected without guessing.
    """

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} {entity_id} not found")
