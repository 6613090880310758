from abc import ABC, abstractmethod
from typing import Any

from launch_scanner.ingestion.models import NormalizedLaunch, SkipResult


class LaunchpadSource(ABC):
    """Read side of an external launchpad API."""

    launchpad_name: str

    def is_valid_id(self, external_id: str) -> bool:
        return bool(external_id and external_id.strip())

    @abstractmethod
    async def list_recent_ids(self) -> list[str]:
        """External ids of the most recent launches, newest first."""
        ...

    @abstractmethod
    async def fetch_detail(self, external_id: str) -> Any:
        """Full payload for one launch.

        Raises NotFoundError on 404, TransientFetchError on other failures.
        """
        ...


class LaunchNormalizer(ABC):
    @abstractmethod
    async def normalize(self, detail: Any) -> NormalizedLaunch | SkipResult:
        ...
