from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, Date, DateTime, Numeric, ForeignKey
from typing import Optional

from .user import Base
from .status import STATUS_DRAFT, STATUS_REJECTED


class Purchase(Base):
    __tablename__ = 'purchases'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False, index=True)
    folder_id: Mapped[int] = mapped_column(ForeignKey('folders.id'), nullable=False, index=True)
    category_id: Mapped[Optional[int]] = mapped_column(Integer)
    payment_method_id: Mapped[Optional[int]] = mapped_column(Integer)
    cost_center_id: Mapped[Optional[int]] = mapped_column(Integer)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    guest_name: Mapped[Optional[str]] = mapped_column(String(200))
    purchase_date: Mapped[Optional[date]] = mapped_column(Date)
    img_url: Mapped[Optional[str]] = mapped_column(String(1024))
    status: Mapped[str] = mapped_column('validation_status', String(16), nullable=False, default=STATUS_DRAFT, index=True)
    validated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    validated_by: Mapped[Optional[int]] = mapped_column(Integer)
    validation_notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    def can_edit(self) -> bool:
        return self.status == STATUS_DRAFT

    def can_delete(self) -> bool:
        return self.status in (STATUS_DRAFT, STATUS_REJECTED)

    def has_document(self) -> bool:
        return bool(self.img_url)
