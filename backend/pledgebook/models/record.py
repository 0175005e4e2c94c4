from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    false,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column
from pledgebook.db.base import Base

ITEM_TYPES = ("Gold", "Silver", "Both")
ITEM_CATEGORIES = ("active", "archived", "big")


class Record(Base):
    __tablename__ = "records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    sl_no: Mapped[str] = mapped_column(String(64), unique=True, index=True)

    # pledge date; the loan is issued on this day
    date: Mapped[Date] = mapped_column(Date, index=True)

    name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    father_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    street: Mapped[str | None] = mapped_column(String(128), nullable=True)
    place: Mapped[str | None] = mapped_column(String(128), nullable=True)
    mobile: Mapped[str | None] = mapped_column(String(16), nullable=True, index=True)

    item: Mapped[str | None] = mapped_column(String(255), nullable=True)
    item_type: Mapped[str | None] = mapped_column(String(8), nullable=True, index=True)
    item_category: Mapped[str] = mapped_column(String(16), default="active", server_default="active", index=True)
    gold_weight_grams: Mapped[float | None] = mapped_column(Numeric(10, 3), nullable=True)
    silver_weight_grams: Mapped[float | None] = mapped_column(Numeric(10, 3), nullable=True)

    amount: Mapped[float | None] = mapped_column(Numeric(14, 2), nullable=True, index=True)
    # flat monthly rate fixed at issuance
    interest: Mapped[float] = mapped_column(Numeric(5, 2), default=0, server_default="0")

    is_returned: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false(), index=True)
    returned_amount: Mapped[float | None] = mapped_column(Numeric(14, 2), nullable=True)
    returned_date: Mapped[DateTime | None] = mapped_column(DateTime, nullable=True)

    person_image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    item_image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    item_return_image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)

    created_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now(), index=True)
    updated_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())
    deleted_at: Mapped[DateTime | None] = mapped_column(DateTime, nullable=True, index=True)


Index("ix_records_returned_type", Record.is_returned, Record.item_type)
Index("ix_records_returned_category", Record.is_returned, Record.item_category)
Index("ix_records_returned_date", Record.is_returned, Record.date)
