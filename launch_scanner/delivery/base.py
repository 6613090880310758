from abc import ABC, abstractmethod

from launch_scanner.storage.models import Launch


class LaunchNotifier(ABC):
    @abstractmethod
    async def send_launch(self, launch: Launch) -> None:
        """Announce a newly stored launch. Must not raise."""
        ...
