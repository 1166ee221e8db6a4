"""Database domain mixins package."""

from .db_catalog import CatalogDbMixin
from .db_teams import TeamDbMixin
from .db_registrations import RegistrationDbMixin

__all__ = [
    "CatalogDbMixin",
    "TeamDbMixin",
    "RegistrationDbMixin",
]
