from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ..shared.database import Base, utcnow


class AdminActivityLog(Base):
    __tablename__ = "admin_activity_log"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    action: Mapped[str] = mapped_column(String(100), index=True)
    details: Mapped[dict] = mapped_column(JSON, default=dict)
    performed_by: Mapped[str] = mapped_column(String(255), default="system")
    performed_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
