from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _VirtualsModel(BaseModel):
    # API is camelCase and grows fields; keep unknown ones for the raw dump
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class VirtualsImageFormat(_VirtualsModel):
    url: str | None = None


class VirtualsImage(_VirtualsModel):
    url: str | None = None
    formats: dict[str, VirtualsImageFormat] | None = None

    def best_url(self) -> str | None:
        thumb = (self.formats or {}).get("thumbnail")
        return (thumb.url if thumb else None) or self.url


class VirtualsCreatorSocial(_VirtualsModel):
    wallet_address: str | None = None


class VirtualsCreator(_VirtualsModel):
    id: int | None = None
    username: str | None = None
    display_name: str | None = None
    user_socials: list[VirtualsCreatorSocial] | None = None


class VirtualsTokenomic(_VirtualsModel):
    name: str | None = None
    amount: str | None = None
    description: str | None = None
    is_locked: bool | None = None
    is_default: bool | None = None
    bips: int | None = None


class VirtualsGenesis(_VirtualsModel):
    id: int | None = None
    status: str | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None


class VirtualsListItem(_VirtualsModel):
    id: int
    uid: str | None = None
    created_at: datetime | None = None
    name: str = ""
    symbol: str | None = None
    chain: str | None = None
    status: str | None = None
    image: VirtualsImage | None = None


class VirtualsLaunchDetail(VirtualsListItem):
    description: str | None = None
    overview: str | None = None
    wallet_address: str | None = None
    pre_token: str | None = None
    pre_token_pair: str | None = None
    token_address: str | None = None
    lp_address: str | None = None
    lp_create_tx: str | None = None
    socials: dict | None = None
    creator: VirtualsCreator | None = None
    tokenomics: list[VirtualsTokenomic] | None = None
    genesis: VirtualsGenesis | None = None


class VirtualsPagination(_VirtualsModel):
    page: int = 1
    page_size: int = 0
    page_count: int = 0
    total: int = 0


class VirtualsMeta(_VirtualsModel):
    pagination: VirtualsPagination | None = None


class VirtualsListResponse(_VirtualsModel):
    data: list[VirtualsListItem] = Field(default_factory=list)
    meta: VirtualsMeta | None = None


class VirtualsDetailResponse(_VirtualsModel):
    data: VirtualsLaunchDetail
