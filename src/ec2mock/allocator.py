"""Retry-until-unique allocation of addresses and identifiers."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from .errors import ResourceExhaustedError
from .store import ResourceStore

logger = logging.getLogger(__name__)


class UniqueAllocator:
    """Draws candidates until one can be reserved in the store.

    The generator is pluggable (random host in a block, random id, random
    MAC) and the reservation is the store's atomic check-then-insert, so two
    threads can never walk away with the same value.

    ``max_attempts=None`` keeps retrying until a free value turns up. With
    a bound, running out raises ResourceExhaustedError.
    """

    def __init__(
        self,
        store: ResourceStore,
        *,
        max_attempts: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the allocator.

        Args:
            store: Store holding the reservation namespaces.
            max_attempts: Attempts per allocation before giving up, or None.
            sleep: Pause function (injectable for tests).
        """
        self._store = store
        self._max_attempts = max_attempts
        self._sleep = sleep

    @property
    def max_attempts(self) -> int | None:
        return self._max_attempts

    def allocate(
        self,
        namespace: str,
        generate: Callable[[], str],
        *,
        operation_name: str = "Allocate",
        pause_seconds: float = 0.0,
        exhausted_code: str | None = None,
    ) -> str:
        """Generate candidates until one is reserved.

        Args:
            namespace: Reservation namespace the value must be unique in.
            generate: Produces a candidate; its exceptions propagate.
            operation_name: API call on whose behalf the value is allocated.
            pause_seconds: Pause after each collision, taken outside the lock.
            exhausted_code: EC2 error code used if the attempt bound is hit.

        Returns:
            The reserved value.

        Raises:
            ResourceExhaustedError: If max_attempts collisions occur in a row.
        """
        attempt = 0
        while True:
            attempt += 1
            candidate = generate()
            if self._store.reserve(namespace, candidate):
                return candidate

            logger.debug(
                "Allocation collision",
                extra={"namespace": namespace, "candidate": candidate, "attempt": attempt},
            )

            if self._max_attempts is not None and attempt >= self._max_attempts:
                logger.warning(
                    "Allocation attempts exhausted",
                    extra={"namespace": namespace, "attempts": attempt},
                )
                raise ResourceExhaustedError(
                    f"No free value found in '{namespace}' after {attempt} attempts",
                    operation_name,
                    code=exhausted_code,
                )

            if pause_seconds > 0:
                self._sleep(pause_seconds)
