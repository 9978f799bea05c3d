"""Computer scaffold providing scheduling and control utilities."""

from __future__ import annotations

from dataclasses import dataclass, field
import heapq
import logging
import math
from typing import Callable, List, Optional, Protocol

logger = logging.getLogger(__name__)

TIMER_EVENT = "timers.tick"


class SchedulableCPU(Protocol):
    """What the scheduler needs from a CPU core."""

    status: object

    def run(self, cycles: int) -> int:
        ...

    def reset(self) -> None:
        ...

    def tick_timers(self) -> None:
        ...


@dataclass(order=True)
class _ComputerEvent:
    clock: int
    order: int
    handler: Callable[["Computer"], None] = field(compare=False)
    name: str = field(default="", compare=False)

    def apply(self, computer: "Computer") -> None:
        self.handler(computer)


class EventQueue:
    """Priority queue of events keyed by instruction clock."""

    def __init__(self) -> None:
        self._heap: List[_ComputerEvent] = []

    def add(self, event: _ComputerEvent) -> None:
        heapq.heappush(self._heap, event)

    def pop_ready(self, clock: int) -> List[_ComputerEvent]:
        ready: List[_ComputerEvent] = []
        while self._heap and self._heap[0].clock <= clock:
            ready.append(heapq.heappop(self._heap))
        return ready

    def next_clock(self) -> Optional[int]:
        return self._heap[0].clock if self._heap else None

    def discard(self, name: str) -> int:
        """Drop every queued event called ``name`` and return how many went."""

        kept = [event for event in self._heap if event.name != name]
        removed = len(self._heap) - len(kept)
        if removed:
            self._heap[:] = kept
            heapq.heapify(self._heap)
        return removed

    def clear(self) -> None:
        self._heap.clear()

    def __len__(self) -> int:
        return len(self._heap)


class Computer:
    """Host machine driving a CPU at a fixed instruction rate.

    ``clock_count`` counts executed instructions. The delay/sound timers are
    ticked by a periodic event every ``cpu_clock_frequency / timer_frequency``
    instructions, so timer cadence stays fixed however the caller slices
    :meth:`tick` calls.
    """

    STATUS_RUNNING = 0
    STATUS_PAUSED = 1
    STATUS_STOPPED = 2

    def __init__(
        self,
        hardware: object,
        *,
        cpu_clock_frequency: float = 600.0,
        timer_frequency: float = 60.0,
    ) -> None:
        if cpu_clock_frequency <= 0 or timer_frequency <= 0:
            raise ValueError("frequencies must be positive")
        self.hardware = hardware
        self.cpu_clock_frequency = cpu_clock_frequency
        self.timer_frequency = timer_frequency
        self.clock_count: int = 0
        self.timer_ticks: int = 0
        self._cpu: Optional[SchedulableCPU] = None
        self._running_status: int = self.STATUS_STOPPED
        self._event_queue = EventQueue()
        self._event_counter = 0
        self._timer_active: bool = False
        self._timer_generation: int = 0
        self._next_timer_due: float = 0.0

    # ------------------------------------------------------------------
    # CPU integration
    # ------------------------------------------------------------------
    @property
    def cpu(self) -> Optional[SchedulableCPU]:
        return self._cpu

    def set_cpu(self, cpu: SchedulableCPU) -> None:
        self._cpu = cpu

    @property
    def timer_interval(self) -> float:
        return self.cpu_clock_frequency / self.timer_frequency

    def cycles_for(self, seconds: float) -> int:
        return max(1, int(round(seconds * self.cpu_clock_frequency)))

    def tick(self, cycles: int) -> int:
        """Execute up to ``cycles`` instructions, firing due events in between.

        Returns the number of instructions actually executed, which is less
        than requested when the machine is paused, stopped or halted.
        """

        if cycles <= 0:
            return 0
        self._process_events()
        target = self.clock_count + cycles
        executed_total = 0
        while self.clock_count < target:
            if self._running_status != self.STATUS_RUNNING:
                break
            step = target - self.clock_count
            next_event = self._event_queue.next_clock()
            if next_event is not None and next_event > self.clock_count:
                step = min(step, next_event - self.clock_count)
            executed = self._execute_cpu(step)
            executed_total += executed
            self._process_events()
            if executed < step:
                break
        return executed_total

    def _execute_cpu(self, step: int) -> int:
        if self._cpu is None:
            self.clock_count += step
            return step
        status = self._cpu.status
        before = getattr(status, "cycle_count", 0)
        try:
            self._cpu.run(step)
        finally:
            executed = getattr(self._cpu.status, "cycle_count", before) - before
            self.clock_count += executed
        return executed

    # ------------------------------------------------------------------
    # Control lifecycle
    # ------------------------------------------------------------------
    def power_on(self) -> None:
        self._run_reset()
        self._running_status = self.STATUS_RUNNING
        self._start_periodic_tasks()

    def power_off(self) -> None:
        if self._running_status == self.STATUS_STOPPED:
            return
        self._schedule_event(lambda comp: comp._apply_power_off(), name="powerOff")

    def reset(self) -> None:
        self._schedule_event(lambda comp: comp._run_reset(), name="reset")

    def pause(self) -> None:
        if self._running_status != self.STATUS_RUNNING:
            return
        self._schedule_event(lambda comp: comp._apply_pause(), name="pause")

    def resume(self) -> None:
        if self._running_status != self.STATUS_PAUSED:
            return
        self._schedule_event(lambda comp: comp._apply_resume(), name="resume")

    def toggle_pause(self) -> None:
        if self._running_status == self.STATUS_RUNNING:
            self.pause()
        else:
            self.resume()

    def get_running_status(self) -> int:
        return self._running_status

    def is_running(self) -> bool:
        return self._running_status == self.STATUS_RUNNING

    def set_clock_frequency(self, frequency: float) -> None:
        if frequency <= 0:
            raise ValueError("frequency must be positive")
        self.cpu_clock_frequency = frequency
        if self._running_status == self.STATUS_RUNNING:
            self._stop_periodic_tasks()
            self._start_periodic_tasks()

    # ------------------------------------------------------------------
    # Event dispatch helpers
    # ------------------------------------------------------------------
    def _process_events(self) -> None:
        for event in self._event_queue.pop_ready(self.clock_count):
            event.apply(self)

    def _schedule_event(self, handler: Callable[["Computer"], None], delay_cycles: int = 0, *, name: str = "") -> None:
        event_clock = max(self.clock_count + max(delay_cycles, 0), 0)
        event = _ComputerEvent(event_clock, self._event_counter, handler, name)
        self._event_counter += 1
        self._event_queue.add(event)
        if event_clock <= self.clock_count:
            self._process_events()

    def _run_reset(self) -> None:
        active = self._running_status == self.STATUS_RUNNING
        self._stop_periodic_tasks()
        self._event_queue.clear()
        self.clock_count = 0
        self.timer_ticks = 0
        if self._cpu is not None:
            self._cpu.reset()
        self._reset_hardware()
        logger.debug("machine reset")
        if active:
            self._start_periodic_tasks()

    def _reset_hardware(self) -> None:
        """Hook for subclasses that own memory or peripherals."""

    def _apply_pause(self) -> None:
        if self._running_status != self.STATUS_RUNNING:
            return
        self._running_status = self.STATUS_PAUSED
        self._stop_periodic_tasks()

    def _apply_resume(self) -> None:
        if self._running_status == self.STATUS_RUNNING:
            return
        self._running_status = self.STATUS_RUNNING
        self._start_periodic_tasks()

    def _apply_power_off(self) -> None:
        self._running_status = self.STATUS_STOPPED
        self._stop_periodic_tasks()
        self._event_queue.clear()

    def _start_periodic_tasks(self) -> None:
        if self._running_status != self.STATUS_RUNNING or self._timer_active:
            return
        self._timer_active = True
        self._next_timer_due = float(self.clock_count)
        self._schedule_next_timer()

    def _stop_periodic_tasks(self) -> None:
        self._timer_active = False
        self._timer_generation += 1
        self._event_queue.discard(TIMER_EVENT)

    def _schedule_next_timer(self) -> None:
        self._next_timer_due += self.timer_interval
        delay = max(1, math.ceil(self._next_timer_due) - self.clock_count)
        generation = self._timer_generation
        self._schedule_event(
            lambda comp: comp._timer_tick_event(comp, generation), delay, name=TIMER_EVENT
        )

    def _timer_tick_event(self, comp: "Computer", generation: int) -> None:
        # Events left over from before a pause or reset belong to a stale chain.
        if generation != comp._timer_generation:
            return
        if not comp._timer_active or comp._running_status != comp.STATUS_RUNNING:
            return
        if comp._cpu is not None:
            comp._cpu.tick_timers()
        comp.timer_ticks += 1
        comp._schedule_next_timer()
