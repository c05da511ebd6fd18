from pathlib import Path

from refurb_workflow.catalog.base import BaseStepCatalog
from refurb_workflow.catalog.json_catalog import JsonStepCatalog
from refurb_workflow.config.settings import Settings


class StepCatalogFactory:
    """Creates the step catalog configured for this deployment, if any."""

    @classmethod
    def create(cls, settings: Settings) -> BaseStepCatalog | None:
        if not settings.step_catalog_path:
            return None
        return JsonStepCatalog(Path(settings.step_catalog_path))
