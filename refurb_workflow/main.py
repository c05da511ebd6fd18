from refurb_workflow.config.settings import Settings
from refurb_workflow.database.connection import close_pool, ensure_schema, init_pool
from refurb_workflow.logging.logger import Log
from refurb_workflow.workflow.engine import build_engine


def main() -> None:
    """Entry point: initialize pool -> ensure schema -> build engine -> report queue stats."""
    settings = Settings()
    Log.configure(settings.log_level)
    uses_postgres = settings.storage_backend == "postgres"
    if uses_postgres:
        init_pool(settings)

    try:
        if uses_postgres:
            ensure_schema()
        engine = build_engine(settings)
        stats = engine.get_stats()
        Log.info(
            "Refurbishment workflow ready",
            backend=settings.storage_backend,
            total_jobs=stats.total,
            completed_today=stats.completed_today,
        )
    finally:
        if uses_postgres:
            close_pool()


if __name__ == "__main__":
    main()
