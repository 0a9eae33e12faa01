"""Matter (case) model."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.core.time import utc_now


class Matter(Base):
    __tablename__ = "matters"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    case_number = Column(String(100), nullable=True)
    status = Column(String(30), nullable=False, default="open")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    client = relationship("Client", back_populates="matters")
