from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..shared.database import Base, utcnow


class MaterialCategory(Base):
    __tablename__ = "material_categories"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True)
    description: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class Material(Base):
    __tablename__ = "materials"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text, default="")
    tags: Mapped[list] = mapped_column(JSON, default=list)
    pdf_url: Mapped[str] = mapped_column(String(1024), default="")
    category_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("material_categories.id", ondelete="SET NULL"), nullable=True, index=True
    )
    associated_test_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("tests.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(20), default="draft")  # draft/published/coming_soon
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    category: Mapped[MaterialCategory | None] = relationship()

    @property
    def category_name(self) -> str:
        return self.category.name if self.category else ""
