"""Per-platform strategy contract.

A launch is classified once into a LaunchVariant (chain family x lifecycle
status) and a LaunchpadStrategy is picked for it; the normalizer then asks the
strategy for links instead of re-branching on chain/status strings.
"""

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass

from launch_scanner.chains.base import ChainFamily
from launch_scanner.content.fetcher import LinkSpec


class LaunchStatus(str, enum.Enum):
    PRESALE = "PRESALE"      # sale phase, token not yet tradable
    BONDING = "BONDING"      # tradable on the platform's curve
    AVAILABLE = "AVAILABLE"  # graduated / generally available


@dataclass(frozen=True)
class LaunchVariant:
    family: ChainFamily
    status: LaunchStatus

    @property
    def on_chain(self) -> bool:
        """Whether a token contract exists to query."""
        return self.status is not LaunchStatus.PRESALE


@dataclass(frozen=True)
class LinkParams:
    creator_address: str | None = None
    token_address: str | None = None
    uid: str | None = None
    launchpad_specific_id: str | None = None


class LaunchpadStrategy(ABC):
    """Link generator and description vocabulary for one platform on one chain family."""

    launchpad_name: str
    family: ChainFamily
    # Whole-token supply the platform fixes for every launch; None means ask the chain
    fixed_total_supply: int | None = None

    @abstractmethod
    def launch_url(self, params: LinkParams) -> str:
        ...

    @abstractmethod
    def custom_links(self, params: LinkParams) -> list[LinkSpec]:
        """Pages worth fetching for the additional-information section."""
        ...

    @abstractmethod
    def holders_url(self, token: str) -> str:
        ...

    @abstractmethod
    def pool_url(self, pool: str) -> str:
        ...

    @abstractmethod
    def transaction_url(self, tx: str) -> str:
        ...

    @abstractmethod
    def creator_links(self, creator: str) -> list[tuple[str, str]]:
        """(label, url) pairs for the creator-info section."""
        ...
