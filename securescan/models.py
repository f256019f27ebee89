from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.sql import func

from securescan.database import Base


class KeyValue(Base):
    __tablename__ = "key_value"

    key = Column(String, primary_key=True)  # e.g. 'securescan_history'
    value = Column(Text, nullable=False)  # JSON document
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
