"""
Greeting Service

Remembers which users already received the one-time introduction. The set
lives for the lifetime of the process, so a restart greets everyone again.
"""

from typing import Set

from src.models.types import UserId
from src.services.base_service import BaseService


class GreetingTracker(BaseService):
    """Set of users who have been greeted"""

    def __init__(self):
        super().__init__()
        self._greeted: Set[UserId] = set()

    def has_greeted(self, user_id: UserId) -> bool:
        return user_id in self._greeted

    def mark_greeted(self, user_id: UserId) -> bool:
        """
        Record that ``user_id`` has been greeted

        Returns:
            True if the user was not greeted before
        """
        if user_id in self._greeted:
            return False
        self._greeted.add(user_id)
        self.logger.debug("User greeted", user_id=user_id)
        return True

    def forget(self, user_id: UserId) -> None:
        self._greeted.discard(user_id)

    @property
    def greeted_count(self) -> int:
        return len(self._greeted)
