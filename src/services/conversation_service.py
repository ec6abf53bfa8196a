"""
Conversation Service

Bounded short-term memory of each user's conversation with the model.

Turns are kept oldest first. A turn is forgotten once it is as old as the
retention window, and each user keeps at most ``max_turns`` turns (oldest
dropped first). Every mutation rewrites the full snapshot through the
repository; persistence failures are logged and the store keeps working
from memory.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional

from src.models.conversation import Turn, utc_now
from src.models.types import Role, UserId
from src.repositories.exceptions import PersistenceError
from src.repositories.snapshot_repository import Snapshot, SnapshotRepository
from src.services.base_service import BaseService
from src.utils.metrics import RelayMetrics


class ConversationStore(BaseService):
    """Per-user rolling conversation history"""

    def __init__(
            self,
            repository: SnapshotRepository,
            retention: timedelta,
            max_turns: int,
            metrics: Optional[RelayMetrics] = None
    ):
        super().__init__()
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        if retention.total_seconds() <= 0:
            raise ValueError("retention must be positive")

        self.repository = repository
        self.retention = retention
        self.max_turns = max_turns
        self.metrics = metrics
        self._log: Dict[UserId, List[Turn]] = {}

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def append(
            self,
            user_id: UserId,
            role: Role,
            text: str,
            now: Optional[datetime] = None
    ) -> Turn:
        """
        Remember a new turn for ``user_id``

        Expired turns are pruned before the new turn is added, and the
        history is then truncated to ``max_turns`` from the oldest end.

        Args:
            user_id: Messenger sender id
            role: Originator of the turn
            text: Message content
            now: Current time (defaults to the wall clock)

        Returns:
            The stored turn
        """
        self._require(user_id, "user_id")
        now = now or utc_now()

        turns = self._fresh(self._log.get(user_id, []), now)
        turn = Turn(role=role, content=text or "", timestamp=now)
        turns.append(turn)
        if len(turns) > self.max_turns:
            turns = turns[-self.max_turns:]
        self._log[user_id] = turns

        self._persist()
        self._update_gauge()
        return turn

    def history(self, user_id: UserId, now: Optional[datetime] = None) -> List[Turn]:
        """
        Current turns of ``user_id``, oldest first

        Expired turns are dropped from memory but the read does not persist.
        """
        turns = self._log.get(user_id)
        if not turns:
            return []

        now = now or utc_now()
        fresh = self._fresh(turns, now)
        if len(fresh) != len(turns):
            if fresh:
                self._log[user_id] = fresh
            else:
                del self._log[user_id]
        return list(fresh)

    def reset(self, user_id: UserId) -> bool:
        """
        Forget everything remembered for ``user_id``

        Returns:
            True if any turns were removed
        """
        removed = self._log.pop(user_id, None)
        if not removed:
            return False

        self.log_operation("reset_memory", user_id=user_id, turns_removed=len(removed))
        self._persist()
        self._update_gauge()
        return True

    def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Prune expired turns for every user

        Users left without turns are dropped. The snapshot is persisted only
        when something changed.

        Returns:
            Number of turns removed
        """
        now = now or utc_now()
        removed = 0
        emptied = []

        for user_id, turns in self._log.items():
            fresh = self._fresh(turns, now)
            removed += len(turns) - len(fresh)
            if fresh:
                self._log[user_id] = fresh
            else:
                emptied.append(user_id)

        for user_id in emptied:
            del self._log[user_id]

        if removed or emptied:
            self.logger.info(
                "Expired conversation memory swept",
                turns_removed=removed,
                users_removed=len(emptied),
                active_users=len(self._log)
            )
            self._persist()
            self._update_gauge()

        return removed

    def load(self, now: Optional[datetime] = None) -> None:
        """
        Replace in-memory state with the persisted snapshot

        Any read or parse failure leaves the store empty.
        """
        now = now or utc_now()
        try:
            snapshot = self.repository.load()
            log = self._parse_snapshot(snapshot, now)
        except Exception as e:
            self.logger.error(
                "Failed to load conversation snapshot, starting empty",
                error=str(e),
                error_type=type(e).__name__
            )
            if self.metrics:
                self.metrics.persistence_failures.inc()
            log = {}

        self._log = log
        self._update_gauge()
        self.logger.info(
            "Conversation memory loaded",
            users=len(self._log),
            turns=self.turn_count
        )

    def flush(self) -> bool:
        """Persist the current snapshot; returns whether the write succeeded"""
        return self._persist()

    def snapshot(self) -> Snapshot:
        return {
            user_id: [turn.to_snapshot() for turn in turns]
            for user_id, turns in self._log.items()
        }

    @property
    def active_user_count(self) -> int:
        return len(self._log)

    @property
    def turn_count(self) -> int:
        return sum(len(turns) for turns in self._log.values())

    def __contains__(self, user_id: UserId) -> bool:
        return user_id in self._log

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _fresh(self, turns: List[Turn], now: datetime) -> List[Turn]:
        return [turn for turn in turns if now - turn.timestamp < self.retention]

    def _parse_snapshot(self, snapshot: Snapshot, now: datetime) -> Dict[UserId, List[Turn]]:
        log: Dict[UserId, List[Turn]] = {}
        for user_id, raw_turns in snapshot.items():
            if not isinstance(raw_turns, list):
                raise ValueError(f"Turns for user {user_id} must be a list")
            turns = [Turn.from_snapshot(raw) for raw in raw_turns]
            turns = self._fresh(turns, now)[-self.max_turns:]
            if turns:
                log[str(user_id)] = turns
        return log

    def _persist(self) -> bool:
        try:
            self.repository.save(self.snapshot())
            return True
        except PersistenceError as e:
            self.logger.error(
                "Failed to persist conversation snapshot, continuing in memory",
                error=str(e),
                path=e.path
            )
            if self.metrics:
                self.metrics.persistence_failures.inc()
            return False

    def _update_gauge(self) -> None:
        if self.metrics:
            self.metrics.active_conversations.set(len(self._log))
