"""Central model registry: import all models so Alembic autodiscover works."""

from assettrack.database import Base  # noqa: F401

from assettrack.models.document import Document  # noqa: F401
