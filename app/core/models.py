from sqlalchemy import Column, Integer, String, TIMESTAMP
from sqlalchemy.sql import func

from app.core.database import Base

# Storage of the ownership registry. Never addressable by non-privileged callers.
REGISTRY_TABLE = "app_managed_tables"


# =========================
# Managed table (ownership registry)
# =========================
class ManagedTable(Base):
    """
    One row per table created through the API / CLI.

    table_name is the unquoted name exactly as the caller typed it, so lookups
    are case-sensitive. Rows are written once and never updated.
    """

    __tablename__ = REGISTRY_TABLE

    table_id = Column(Integer, primary_key=True, autoincrement=True)

    table_name = Column(String(100), nullable=False, unique=True)
    owner_user_id = Column(Integer, nullable=False)

    created_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
