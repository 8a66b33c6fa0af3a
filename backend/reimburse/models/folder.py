from __future__ import annotations
from datetime import date, datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, Date, DateTime, ForeignKey
from typing import Optional

from .user import Base
from .status import STATUS_DRAFT


class Folder(Base):
    __tablename__ = 'folders'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False, index=True)
    folder_name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    start_date: Mapped[Optional[date]] = mapped_column(Date)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[str] = mapped_column('validation_status', String(16), nullable=False, default=STATUS_DRAFT, index=True)
    validated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    validated_by: Mapped[Optional[int]] = mapped_column(Integer)
    validation_notes: Mapped[Optional[str]] = mapped_column(Text)

    def can_edit(self) -> bool:
        return self.status == STATUS_DRAFT
