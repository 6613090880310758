import enum
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from launch_scanner.storage.models import MANUAL_LAUNCHPAD, PLACEHOLDER, UNRATED

# Fields a later pass may leave unset; the stored value then survives
TOKENOMICS_FIELDS = (
    "creator_tokens_held",
    "creator_initial_tokens_held",
    "tokens_for_sale",
    "total_token_supply",
    "creator_token_holding_percentage",
    "creator_token_movement_details",
    "main_selling_address",
    "sent_to_zero_address",
)


class NormalizedLaunch(BaseModel):
    launchpad: str = MANUAL_LAUNCHPAD
    launchpad_specific_id: str | None = None
    title: str
    url: str
    description: str
    image_url: str | None = None
    chain: str | None = None
    status: str | None = None
    launched_at: datetime | None = None

    creator_address: str | None = None
    token_address: str | None = None

    # raw base units
    creator_tokens_held: int | None = None
    creator_initial_tokens_held: int | None = None
    tokens_for_sale: int | None = None
    total_token_supply: int | None = None
    creator_token_holding_percentage: Decimal | None = None
    creator_token_movement_details: str | None = None
    main_selling_address: str | None = None
    sent_to_zero_address: bool | None = None

    summary: str = PLACEHOLDER
    analysis: str = PLACEHOLDER
    rating: int = UNRATED

    @property
    def has_token_stats(self) -> bool:
        return any(getattr(self, f) is not None for f in TOKENOMICS_FIELDS)


class SkipResult(BaseModel):
    reason: str


class UpsertAction(str, enum.Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    SCORED = "scored"    # existing record, only LLM fields rewritten
    SKIPPED = "skipped"


class DebugResult(BaseModel):
    success: bool
    message: str
