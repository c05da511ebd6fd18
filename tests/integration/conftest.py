import os
import uuid
from collections.abc import Callable, Generator
from typing import Any

import psycopg
import pytest

from refurb_workflow.catalog.static_catalog import StaticStepCatalog
from refurb_workflow.config.settings import Settings
from refurb_workflow.database.connection import (
    close_pool,
    ensure_schema,
    get_connection,
    init_pool,
)
from refurb_workflow.database.models import JobRecord
from refurb_workflow.database.postgres_store import PostgresWorkflowStore
from refurb_workflow.workflow.engine import WorkflowEngine

MakeJob = Callable[..., JobRecord]


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "refurb_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        init_pool(test_settings)
        ensure_schema()
    except Exception as e:
        close_pool()
        pytest.skip(f"PostgreSQL test DB not available: {e}. Set DB_* env to point at one.")
    try:
        yield
    finally:
        close_pool()


@pytest.fixture
def db_conn(integration_pool: None) -> Generator[psycopg.Connection[Any], None, None]:
    with get_connection() as conn:
        yield conn


@pytest.fixture
def integration_cleanup(integration_pool: None) -> Generator[list[str], None, None]:
    job_ids: list[str] = []
    yield job_ids
    if not job_ids:
        return
    with get_connection() as conn:
        with conn.cursor() as cur:
            for table in (
                "job_diagnoses",
                "refurb_step_completions",
                "workflow_transitions",
                "refurb_jobs",
            ):
                column = "id" if table == "refurb_jobs" else "job_id"
                cur.execute(f"DELETE FROM {table} WHERE {column} = ANY(%s)", (job_ids,))
        conn.commit()


@pytest.fixture
def engine(integration_pool: None, catalog: StaticStepCatalog) -> WorkflowEngine:
    return WorkflowEngine(PostgresWorkflowStore(), catalog=catalog)


@pytest.fixture
def make_job(engine: WorkflowEngine, integration_cleanup: list[str]) -> MakeJob:
    """Create a job with a unique unit id and register it for cleanup."""

    def _make(category: str = "PHONE", **kwargs: Any) -> JobRecord:
        job = engine.create_job(f"IT-{uuid.uuid4().hex[:12]}", "PALLET-IT", category, **kwargs)
        integration_cleanup.append(job.id)
        return job

    return _make


@pytest.fixture
def job(make_job: MakeJob) -> JobRecord:
    return make_job()
