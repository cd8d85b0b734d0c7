# Models package init
"""
Importing this package registers every table with Base.metadata
(used by Alembic autogenerate and by the test suite's create_all()).
"""

from app.models.category import Category
from app.models.image import Image

__all__ = ["Category", "Image"]
