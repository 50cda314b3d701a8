"""ORM model package."""

from buildplan.models.entities import (
    ActivityTemplate,
    Measurement,
    Project,
    ProjectActivity,
    Unit,
    UnitActivity,
)

__all__ = [
    "ActivityTemplate",
    "Measurement",
    "Project",
    "ProjectActivity",
    "Unit",
    "UnitActivity",
]
