"""SQLAlchemy ORM models for categories and listings.

Tables are created by Alembic migration 003; queries use raw SQL.
Catalog CRUD lives outside this service, so only the columns the escrow
engine reads or writes are mapped.
"""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.em_common.database import Base


class CategoryModel(Base):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), primary_key=True, server_default=text("gen_random_uuid()")
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    commission_rate_bps: Mapped[int] = mapped_column(Integer, nullable=False, default=800)


class ListingModel(Base):
    __tablename__ = "listings"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), primary_key=True, server_default=text("gen_random_uuid()")
    )
    seller_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    category_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    stock_type: Mapped[str] = mapped_column(String(16), nullable=False, default="limited")
    quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    delivery_type: Mapped[str] = mapped_column(String(16), nullable=False, default="manual")
    delivery_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("NOW()")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("NOW()")
    )
