"""Constant-arrival-rate scenarios: warm-up then measurement.

Iterations start on a fixed schedule regardless of response time. Each one
borrows a virtual user from an elastic pool that starts at pre_allocated_vus
and grows up to max_vus; when no VU is available the iteration is dropped.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from .config import parse_duration
from .logging_config import get_logger
from .models import RunConfig, VariantDescriptor

logger = get_logger("scenarios")

# Time to let in-flight iterations finish after a phase ends (seconds)
DEFAULT_GRACEFUL_STOP_SEC = 30.0

WARM_UP = "warm_up"

IterationFn = Callable[[int, int], Awaitable[None]]


@dataclass(slots=True)
class ArrivalRateScenario:
    """One load phase at a fixed rate (iterations per second)."""

    name: str
    rate: int
    duration_seconds: float
    pre_allocated_vus: int
    max_vus: int
    record: bool  # False for warm-up: results are excluded from the snapshot
    graceful_stop_seconds: float = DEFAULT_GRACEFUL_STOP_SEC


def build_scenarios(config: RunConfig, descriptor: VariantDescriptor) -> list[ArrivalRateScenario]:
    """Warm-up (skipped when its duration is 0) followed by the measured phase."""
    pre = descriptor.pre_allocated_vus(config.target_rps)
    max_vus = descriptor.max_vus(config.target_rps)
    phases: list[ArrivalRateScenario] = []
    warmup_seconds = parse_duration(config.warmup_duration)
    if warmup_seconds > 0:
        phases.append(
            ArrivalRateScenario(WARM_UP, config.target_rps, warmup_seconds, pre, max_vus, record=False)
        )
    phases.append(
        ArrivalRateScenario(
            f"{descriptor.variant.value}_test",
            config.target_rps,
            parse_duration(config.test_duration),
            pre,
            max_vus,
            record=True,
        )
    )
    return phases


class VUPool:
    """Elastic pool of virtual user ids. Not thread-safe; one event loop only."""

    __slots__ = ("_idle", "allocated", "max_vus", "active", "_iterations")

    def __init__(self, pre_allocated: int, max_vus: int) -> None:
        self._idle: deque[int] = deque(range(pre_allocated))
        self.allocated = pre_allocated
        self.max_vus = max(max_vus, pre_allocated)
        self.active = 0
        self._iterations: dict[int, int] = {}

    def acquire(self) -> int | None:
        """Idle VU id, a newly allocated one, or None when the pool is exhausted."""
        if self._idle:
            vu = self._idle.popleft()
        elif self.allocated < self.max_vus:
            vu = self.allocated
            self.allocated += 1
        else:
            return None
        self.active += 1
        return vu

    def release(self, vu: int) -> None:
        self.active -= 1
        self._iterations[vu] = self._iterations.get(vu, 0) + 1
        self._idle.append(vu)

    def iteration_of(self, vu: int) -> int:
        """Per-VU iteration counter (0-based) for the next iteration of vu."""
        return self._iterations.get(vu, 0)


async def run_arrival_rate(
    scenario: ArrivalRateScenario,
    iteration: IterationFn,
    on_dropped: Callable[[], None] | None = None,
    on_vus: Callable[[int, int], None] | None = None,
) -> float:
    """Run one phase for its full duration; return the wall-clock seconds including the stop tail.

    iteration(vu, vu_iteration) is awaited once per scheduled slot. Exceptions
    from an iteration are logged and do not stop the phase.
    """
    loop = asyncio.get_running_loop()
    pool = VUPool(scenario.pre_allocated_vus, scenario.max_vus)
    interval = 1.0 / scenario.rate if scenario.rate > 0 else scenario.duration_seconds + 1
    tasks: set[asyncio.Task] = set()
    dropped = 0

    async def _run(vu: int) -> None:
        try:
            await iteration(vu, pool.iteration_of(vu))
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Iteration failed in %s (vu=%s)", scenario.name, vu)
        finally:
            pool.release(vu)
            if on_vus is not None:
                on_vus(pool.active, pool.allocated)

    logger.info(
        "Starting %s: rate=%s/s, duration=%.1fs, vus=%s..%s",
        scenario.name, scenario.rate, scenario.duration_seconds, scenario.pre_allocated_vus, scenario.max_vus,
    )
    start = loop.time()
    n = 0
    while True:
        offset = n * interval
        if offset >= scenario.duration_seconds:
            break
        delay = start + offset - loop.time()
        if delay > 0:
            await asyncio.sleep(delay)
        vu = pool.acquire()
        if vu is None:
            dropped += 1
            if on_dropped is not None:
                on_dropped()
        else:
            if on_vus is not None:
                on_vus(pool.active, pool.allocated)
            task = asyncio.create_task(_run(vu))
            tasks.add(task)
            task.add_done_callback(tasks.discard)
        n += 1

    remaining = start + scenario.duration_seconds - loop.time()
    if remaining > 0:
        await asyncio.sleep(remaining)
    if tasks:
        _, pending = await asyncio.wait(set(tasks), timeout=scenario.graceful_stop_seconds)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("%s: %d iterations interrupted after graceful stop", scenario.name, len(pending))
            await asyncio.gather(*pending, return_exceptions=True)
    elapsed = loop.time() - start
    if dropped:
        logger.warning("%s: %d iterations dropped (no free VU, max_vus=%s)", scenario.name, dropped, scenario.max_vus)
    logger.info("Finished %s in %.1fs: %d iterations started", scenario.name, elapsed, n - dropped)
    return elapsed
