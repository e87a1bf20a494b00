from sqlalchemy import JSON, Column, DateTime, Integer
from sqlalchemy.sql import func

from deskbridge.database import Base

SINGLETON_ROW_ID = 1


class IntegrationSettings(Base):
    __tablename__ = "integration_settings"

    id = Column(Integer, primary_key=True, default=SINGLETON_ROW_ID)
    payload = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
