from refurb_workflow.config.settings import Settings
from refurb_workflow.database.base import WorkflowStore
from refurb_workflow.database.memory_store import MemoryWorkflowStore
from refurb_workflow.database.postgres_store import PostgresWorkflowStore


class StoreFactory:
    """Creates the workflow store backend selected in settings."""

    BACKENDS: dict[str, type[WorkflowStore]] = {
        "postgres": PostgresWorkflowStore,
        "memory": MemoryWorkflowStore,
    }

    @classmethod
    def create(cls, settings: Settings) -> WorkflowStore:
        backend = settings.storage_backend.lower()
        store_cls = cls.BACKENDS.get(backend)
        if store_cls is None:
            raise ValueError(
                f"Unknown storage backend '{backend}'. Choose from: {list(cls.BACKENDS)}"
            )
        return store_cls()
