"""Per-user request queues and the assignment of queriers to users."""

from __future__ import annotations

import bisect
import hashlib
import random
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, FrozenSet, List, Optional, Sequence, Tuple


def shuffle_shard_seed(user_id: str) -> int:
    """Return a stable signed 64-bit seed derived from a user id."""
    digest = hashlib.md5(user_id.encode("utf-8"), usedforsecurity=False).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


def shuffle_queriers_for_user(
    user_seed: int, queriers_to_select: int, all_sorted_queriers: Sequence[str]
) -> Optional[FrozenSet[str]]:
    """Pick the queriers that serve a user.

    Returns None when no limit applies (zero requested, or not enough queriers
    to choose from); every querier may then serve the user.
    """
    if queriers_to_select == 0 or len(all_sorted_queriers) <= queriers_to_select:
        return None
    rnd = random.Random(user_seed)
    return frozenset(rnd.sample(list(all_sorted_queriers), queriers_to_select))


@dataclass(eq=False)
class _UserQueue:
    capacity: int
    seed: int
    index: int = -1
    max_queriers: int = 0
    queriers: Optional[FrozenSet[str]] = None
    requests: Deque[Any] = field(default_factory=deque)

    def offer(self, request: Any) -> bool:
        """Append a request unless the queue is full."""
        if len(self.requests) >= self.capacity:
            return False
        self.requests.append(request)
        return True

    def pop(self) -> Any:
        """Remove and return the oldest request."""
        return self.requests.popleft()

    def __len__(self) -> int:
        return len(self.requests)


@dataclass
class _Querier:
    connections: int = 0
    shutting_down: bool = False
    disconnected_at: Optional[float] = None


class UserQueues:
    """Holds user queues, tracks connected queriers and maps users to queriers.

    Users removed from the middle of the user list leave an empty slot ("")
    so that iteration never skips a user; the list only shrinks at its end.
    Times are seconds on the caller's clock.
    """

    def __init__(self, max_user_queue_size: int, forget_delay: float = 0.0) -> None:
        self.max_user_queue_size = max_user_queue_size
        self.forget_delay = forget_delay
        self.user_queues: Dict[str, _UserQueue] = {}
        self.users: List[str] = []
        self.queriers: Dict[str, _Querier] = {}
        self.sorted_queriers: List[str] = []

    def __len__(self) -> int:
        return len(self.user_queues)

    def delete_queue(self, user_id: str) -> None:
        """Drop a user's queue and free its slot in the user list."""
        queue = self.user_queues.pop(user_id, None)
        if queue is None:
            return
        self.users[queue.index] = ""
        while self.users and self.users[-1] == "":
            self.users.pop()

    def get_or_add_queue(self, user_id: str, max_queriers: int) -> Optional[_UserQueue]:
        """Return the user's queue, creating it if needed; None for an empty user id.

        A max_queriers of zero or less lets every querier serve the user. When it
        changes, the user's queriers are chosen again.
        """
        if user_id == "":
            return None
        max_queriers = max(max_queriers, 0)

        queue = self.user_queues.get(user_id)
        if queue is None:
            queue = _UserQueue(
                capacity=self.max_user_queue_size, seed=shuffle_shard_seed(user_id)
            )
            self.user_queues[user_id] = queue
            try:
                queue.index = self.users.index("")
                self.users[queue.index] = user_id
            except ValueError:
                queue.index = len(self.users)
                self.users.append(user_id)

        if queue.max_queriers != max_queriers:
            queue.max_queriers = max_queriers
            queue.queriers = shuffle_queriers_for_user(
                queue.seed, max_queriers, self.sorted_queriers
            )
        return queue

    def get_next_queue_for_querier(
        self, last_user_index: int, querier_id: str
    ) -> Tuple[Optional[_UserQueue], str, int]:
        """Find the next queue the querier may serve after the given user index.

        Returns the queue, its user and its index, or (None, "", index) when there
        is none. Pass -1 when there is no previous index.
        """
        uid = last_user_index
        for _ in range(len(self.users)):
            uid += 1
            # Wrapping instead of modulo avoids skipping users after the list shrank.
            if uid >= len(self.users):
                uid = 0
            user = self.users[uid]
            if user == "":
                continue
            queue = self.user_queues[user]
            if queue.queriers is not None and querier_id not in queue.queriers:
                continue
            return queue, user, uid
        return None, "", uid

    def add_querier_connection(self, querier_id: str) -> None:
        """Record a new connection from a querier."""
        info = self.queriers.get(querier_id)
        if info is not None:
            info.connections += 1
            # The querier came back during its forget period.
            info.shutting_down = False
            info.disconnected_at = None
            return

        self.queriers[querier_id] = _Querier(connections=1)
        bisect.insort(self.sorted_queriers, querier_id)
        self.recompute_user_queriers()

    def remove_querier_connection(self, querier_id: str, now: float) -> None:
        """Record a closed connection; forget the querier when appropriate."""
        info = self.queriers.get(querier_id)
        if info is None or info.connections <= 0:
            raise RuntimeError("unexpected number of connections for querier")

        info.connections -= 1
        if info.connections > 0:
            return

        if info.shutting_down or self.forget_delay == 0:
            self.remove_querier(querier_id)
            return

        info.disconnected_at = now

    def remove_querier(self, querier_id: str) -> None:
        """Forget a querier and reassign queriers to users."""
        self.queriers.pop(querier_id, None)
        ix = bisect.bisect_left(self.sorted_queriers, querier_id)
        if ix >= len(self.sorted_queriers) or self.sorted_queriers[ix] != querier_id:
            raise RuntimeError("incorrect state of sorted queriers")
        del self.sorted_queriers[ix]
        self.recompute_user_queriers()

    def notify_querier_shutdown(self, querier_id: str) -> None:
        """Record that a querier is shutting down gracefully."""
        info = self.queriers.get(querier_id)
        if info is None:
            return
        if info.connections == 0:
            self.remove_querier(querier_id)
            return
        info.shutting_down = True

    def forget_disconnected_queriers(self, now: float) -> int:
        """Remove queriers disconnected for longer than the forget delay; return how many."""
        if self.forget_delay == 0:
            return 0
        threshold = now - self.forget_delay
        forgotten = 0
        for querier_id, info in list(self.queriers.items()):
            disconnected_at = info.disconnected_at
            if info.connections == 0 and (disconnected_at is None or disconnected_at < threshold):
                self.remove_querier(querier_id)
                forgotten += 1
        return forgotten

    def recompute_user_queriers(self) -> None:
        """Choose the queriers of every user again from the current queriers."""
        for queue in self.user_queues.values():
            queue.queriers = shuffle_queriers_for_user(
                queue.seed, queue.max_queriers, self.sorted_queriers
            )