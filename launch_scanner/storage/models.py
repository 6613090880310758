from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

MANUAL_LAUNCHPAD = "Manual Entry"
PLACEHOLDER = "-"
UNRATED = -1


class Base(DeclarativeBase):
    pass


class Launch(Base):
    __tablename__ = "launches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    launchpad: Mapped[str] = mapped_column(String(128), nullable=False, default=MANUAL_LAUNCHPAD)
    launchpad_specific_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    url: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    chain: Mapped[str | None] = mapped_column(String(32), nullable=True)
    status: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # LLM outputs
    summary: Mapped[str] = mapped_column(Text, nullable=False, default=PLACEHOLDER)
    analysis: Mapped[str] = mapped_column(Text, nullable=False, default=PLACEHOLDER)
    rating: Mapped[int] = mapped_column(Integer, nullable=False, default=UNRATED)

    creator_address: Mapped[str | None] = mapped_column(String(128), nullable=True)
    token_address: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # Tokenomics: raw base-unit integers as decimal strings
    creator_tokens_held: Mapped[str | None] = mapped_column(String(78), nullable=True)
    creator_initial_tokens_held: Mapped[str | None] = mapped_column(String(78), nullable=True)
    tokens_for_sale: Mapped[str | None] = mapped_column(String(78), nullable=True)
    total_token_supply: Mapped[str | None] = mapped_column(String(78), nullable=True)
    creator_token_holding_percentage: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    creator_token_movement_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    main_selling_address: Mapped[str | None] = mapped_column(String(128), nullable=True)
    sent_to_zero_address: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    launched_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    basic_info_updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    token_stats_updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    llm_analysis_updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("rating >= -1 AND rating <= 10", name="ck_launches_rating_range"),
        UniqueConstraint("title", "launchpad", name="uq_launches_title_launchpad"),
        Index("ix_launches_launchpad", "launchpad"),
        Index("ix_launches_rating", "rating"),
        Index("ix_launches_title", "title"),
        Index("ix_launches_launchpad_specific_id", "launchpad_specific_id"),
        Index("ix_launches_chain", "chain"),
        Index("ix_launches_status", "status"),
        Index("ix_launches_creator_address", "creator_address"),
        Index("ix_launches_token_address", "token_address"),
    )
