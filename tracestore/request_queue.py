"""A fair, per-user request queue shared by query schedulers and queriers."""

from __future__ import annotations

import threading
import time
from collections import Counter
from concurrent.futures import CancelledError
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from tracestore.user_queues import UserQueues

FORGET_CHECK_PERIOD = 5.0
"""How often, in seconds, forget_disconnected_queriers is meant to be called."""


class TooManyRequestsError(Exception):
    """Raised when a user already has the maximum number of outstanding requests."""

    def __init__(self, message: str = "too many outstanding requests") -> None:
        super().__init__(message)


class QueueStoppedError(Exception):
    """Raised when the queue has been stopped."""

    def __init__(self, message: str = "queue is stopped") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class UserIndex:
    """Position in the user list, carried between calls for fair iteration."""

    last: int = -1

    def reuse_last_user(self) -> "UserIndex":
        """Return an index that starts the next search at the same user again."""
        if self.last >= 0:
            return UserIndex(self.last - 1)
        return self


def first_user() -> UserIndex:
    """Return an index that starts iteration from the very first user."""
    return UserIndex(-1)


class RequestQueue:
    """Holds requests in per-user queues and hands them out fairly to queriers."""

    def __init__(
        self,
        max_outstanding_per_tenant: int,
        forget_delay: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._queues = UserQueues(max_outstanding_per_tenant, forget_delay)
        self._cond = threading.Condition()
        self._stopped = False
        self._workers = 0
        self._clock = clock
        self._queue_length: Counter = Counter()
        self._discarded: Counter = Counter()

    @property
    def queue_length(self) -> Dict[str, int]:
        """Number of queued requests per user."""
        with self._cond:
            return {user: n for user, n in self._queue_length.items() if n}

    @property
    def discarded_requests(self) -> Dict[str, int]:
        """Number of requests rejected per user."""
        with self._cond:
            return dict(self._discarded)

    def enqueue_request(
        self,
        user_id: str,
        request: Any,
        max_queriers: int,
        on_success: Optional[Callable[[], None]] = None,
    ) -> None:
        """Queue a request for a user.

        max_queriers limits how many queriers serve the user (zero or less: all).
        on_success runs with the lock held, before any querier can take the request.
        """
        with self._cond:
            if self._stopped:
                raise QueueStoppedError()
            queue = self._queues.get_or_add_queue(user_id, max_queriers)
            if queue is None:
                raise ValueError("no queue found")
            if not queue.offer(request):
                self._discarded[user_id] += 1
                raise TooManyRequestsError()
            self._queue_length[user_id] += 1
            self._cond.notify_all()
            if on_success is not None:
                on_success()

    def get_next_request_for_querier(
        self,
        last: UserIndex,
        querier_id: str,
        cancelled: Optional[threading.Event] = None,
    ) -> Tuple[Any, UserIndex]:
        """Take the next request for a querier, blocking until one is available.

        Raises QueueStoppedError once the queue is stopped, and CancelledError when
        ``cancelled`` is set; call querier_disconnecting to wake a waiting querier.
        """

        def is_cancelled() -> bool:
            return cancelled is not None and cancelled.is_set()

        with self._cond:
            querier_wait = False
            while True:
                while (
                    (len(self._queues) == 0 or querier_wait)
                    and not is_cancelled()
                    and not self._stopped
                ):
                    querier_wait = False
                    self._cond.wait()

                if self._stopped:
                    raise QueueStoppedError()
                if is_cancelled():
                    raise CancelledError()

                queue, user_id, index = self._queues.get_next_queue_for_querier(
                    last.last, querier_id
                )
                last = UserIndex(index)
                if queue is None:
                    # Nothing this querier may serve; wait for more requests.
                    querier_wait = True
                    continue

                request = queue.pop()
                if len(queue) == 0:
                    self._queues.delete_queue(user_id)
                self._queue_length[user_id] -= 1
                self._cond.notify_all()
                return request, last

    def forget_disconnected_queriers(self) -> int:
        """Forget queriers gone longer than the forget delay; return how many."""
        with self._cond:
            forgotten = self._queues.forget_disconnected_queriers(self._clock())
            if forgotten > 0:
                # Removing queriers may have changed which users they serve.
                self._cond.notify_all()
            return forgotten

    def stop(self) -> None:
        """Stop the queue once enqueued requests have been dispatched.

        Waits while requests remain and queriers are connected to take them.
        """
        with self._cond:
            while len(self._queues) > 0 and self._workers > 0:
                self._cond.wait()
            self._stopped = True
            self._cond.notify_all()

    def register_querier_connection(self, querier_id: str) -> None:
        """Record a new querier worker connection."""
        with self._cond:
            self._workers += 1
            self._queues.add_querier_connection(querier_id)

    def unregister_querier_connection(self, querier_id: str) -> None:
        """Record a closed querier worker connection."""
        with self._cond:
            self._workers -= 1
            self._queues.remove_querier_connection(querier_id, self._clock())

    def notify_querier_shutdown(self, querier_id: str) -> None:
        """Record that a querier is shutting down gracefully."""
        with self._cond:
            self._queues.notify_querier_shutdown(querier_id)

    def querier_disconnecting(self) -> None:
        """Wake queriers waiting for a request so they can notice cancellation."""
        with self._cond:
            self._cond.notify_all()

    def connected_querier_workers(self) -> int:
        """Number of connected querier workers."""
        with self._cond:
            return self._workers