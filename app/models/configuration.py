from datetime import datetime

from sqlalchemy import DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from app.db.database import Base

CONFIGURATION_ID = 1


class Configuration(Base):
    """Shop-wide settings, a single row with ``id == 1``."""

    __tablename__ = "configuration"

    id: Mapped[int] = mapped_column(primary_key=True)
    tax: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )
