"""Clock port injected into services"""
from abc import ABC, abstractmethod
from datetime import date, datetime


class Clock(ABC):
    """Source of the booking moment"""

    @abstractmethod
    def now(self) -> datetime:
        """Current timestamp"""
        pass

    def today(self) -> date:
        return self.now().date()
