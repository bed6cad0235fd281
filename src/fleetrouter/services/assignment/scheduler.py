"""Serialized driver assignment.

Driver availability and route bindings are shared mutable state, so every
operation touching them is queued and executed one at a time by a single
worker thread. Callers receive a ``concurrent.futures.Future`` per job and wait
on it with a bounded timeout; a job that times out before it starts is
cancelled and skipped by the worker.
"""

from __future__ import annotations

import dataclasses
import itertools
import logging
import queue
import threading
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Any, Callable, Optional

from ...config import settings
from ...models.domain import DriverRecord, RouteRecord
from ..routing.models import VehicleRoute
from .availability import driver_is_available, find_available_drivers, least_loaded, rest_minutes_or_default
from .models import AssignmentResult, JobState
from .repository import FleetRepository

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class AssignmentJob:
    job_id: int
    name: str
    action: Callable[[], Any]
    # Builds the result returned when the action raises; None re-raises to the caller.
    on_error: Optional[Callable[[str], Any]]
    future: Future = dataclasses.field(default_factory=Future)
    state: JobState = JobState.QUEUED


def _final_state(result: Any) -> JobState:
    if isinstance(result, AssignmentResult) and not result.success:
        return JobState.FAILED
    return JobState.SUCCEEDED


class AssignmentScheduler:
    def __init__(
        self,
        repository: FleetRepository | None = None,
        *,
        max_pending: int | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.repository = repository or FleetRepository()
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.assignment_timeout_seconds
        self._queue: queue.Queue[AssignmentJob | None] = queue.Queue(
            maxsize=max_pending if max_pending is not None else settings.assignment_queue_size
        )
        self._job_ids = itertools.count(1)
        self._lifecycle_lock = threading.Lock()
        self._worker: threading.Thread | None = None

    # lifecycle

    @property
    def is_running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def _ensure_worker(self) -> None:
        if self.is_running:
            return
        self._worker = threading.Thread(target=self._run, name="assignment-scheduler", daemon=True)
        self._worker.start()

    def start(self) -> None:
        with self._lifecycle_lock:
            self._ensure_worker()

    def stop(self, timeout: float | None = None) -> None:
        """Finish queued jobs, then stop the worker."""
        with self._lifecycle_lock:
            worker = self._worker
            if worker is None or not worker.is_alive():
                self._worker = None
                return
            self._queue.put(None)
            worker.join(timeout)
            self._worker = None

    def __enter__(self) -> "AssignmentScheduler":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def _run(self) -> None:
        while True:
            job = self._queue.get()
            try:
                if job is None:
                    return
                if not job.future.set_running_or_notify_cancel():
                    job.state = JobState.CANCELLED
                    logger.info(f"Skipping cancelled job #{job.job_id} ({job.name})")
                    continue
                job.state = JobState.RUNNING
                try:
                    result = job.action()
                except Exception as exc:
                    logger.exception(f"Error during {job.name} (job #{job.job_id})")
                    job.state = JobState.FAILED
                    if job.on_error is None:
                        job.future.set_exception(exc)
                    else:
                        job.future.set_result(job.on_error(f"Assignment failed: {exc}"))
                    continue
                job.state = _final_state(result)
                job.future.set_result(result)
            finally:
                self._queue.task_done()

    # queueing

    def submit(
        self,
        name: str,
        action: Callable[[], Any],
        on_error: Optional[Callable[[str], Any]] = None,
    ) -> AssignmentJob:
        """Append a job to the tail of the queue. Raises ``queue.Full`` when saturated."""
        job = AssignmentJob(job_id=next(self._job_ids), name=name, action=action, on_error=on_error)
        with self._lifecycle_lock:
            self._ensure_worker()
            self._queue.put_nowait(job)
        return job

    def _execute(
        self,
        name: str,
        action: Callable[[], Any],
        on_error: Optional[Callable[[str], Any]],
        timeout: float | None,
    ) -> Any:
        try:
            job = self.submit(name, action, on_error)
        except queue.Full:
            logger.warning(f"Rejected {name}: assignment queue is full")
            if on_error is None:
                raise RuntimeError("Assignment queue is full") from None
            return on_error("Assignment queue is full")

        wait = timeout if timeout is not None else self.timeout_seconds
        try:
            return job.future.result(timeout=wait)
        except FutureTimeoutError:
            if job.future.cancel():
                job.state = JobState.CANCELLED
                logger.warning(f"Cancelled {name} (job #{job.job_id}) after waiting {wait:.1f}s in queue")
                if on_error is None:
                    raise TimeoutError(f"{name} timed out waiting for the scheduler") from None
                return on_error(f"Timed out waiting for the assignment queue after {wait:.1f}s")
            # Already running: the binding may be committed, so report its real outcome.
            return job.future.result()

    # assignment

    def _assign_record(self, record: RouteRecord | None) -> AssignmentResult:
        if record is None:
            return AssignmentResult.failed("Route not found")
        if record.assigned_driver_id:
            return AssignmentResult.failed("Route already has an assigned driver")

        candidates = find_available_drivers(
            self.repository,
            record.start_time,
            record.end_time,
            record.rest_minutes,
            required_capacity=record.required_capacity,
        )
        if not candidates:
            return AssignmentResult.failed("No available drivers for this time slot")

        driver = least_loaded(candidates)
        record.assigned_driver_id = driver.driver_id
        driver.is_available = False
        driver.available_from = record.end_time + timedelta(minutes=rest_minutes_or_default(record.rest_minutes))
        driver.drives_count = (driver.drives_count or 0) + 1
        logger.info(f"Assigned driver {driver.driver_id} to route {record.route_id}")
        return AssignmentResult.succeeded(driver.driver_id)

    def assign_route(self, route_id: str | None, *, timeout: float | None = None) -> AssignmentResult:
        """Bind a registered route to the least loaded eligible driver."""

        def action() -> AssignmentResult:
            record = self.repository.get_route(route_id) if route_id else None
            return self._assign_record(record)

        return self._execute(f"assignment of route {route_id}", action, AssignmentResult.failed, timeout)

    def assign(self, route: VehicleRoute | None, *, timeout: float | None = None) -> AssignmentResult:
        """Register a planned route if needed and bind it to a driver."""

        def action() -> AssignmentResult:
            if route is None:
                return AssignmentResult.failed("Route not found")
            if route.assigned_driver_id:
                return AssignmentResult.failed("Route already has an assigned driver")
            record = self.repository.get_route(route.route_id)
            if record is None:
                record = self.repository.add_route(
                    RouteRecord(
                        route_id=route.route_id,
                        start_time=route.start_time,
                        end_time=route.end_time,
                        rest_minutes=route.rest_minutes,
                        required_capacity=route.required_capacity,
                    )
                )
            result = self._assign_record(record)
            if result.success:
                route.assigned_driver_id = result.driver_id
            return result

        name = f"assignment of route {route.route_id if route else None}"
        return self._execute(name, action, AssignmentResult.failed, timeout)

    def check_availability(
        self,
        driver_id: str,
        start: datetime,
        end: datetime,
        *,
        timeout: float | None = None,
    ) -> bool:
        """Read-only availability check, ordered behind any in-flight assignment."""
        return self._execute(
            f"availability check for driver {driver_id}",
            lambda: driver_is_available(self.repository, driver_id, start, end),
            lambda message: False,
            timeout,
        )

    # registry access, serialized with assignments

    def register_driver(self, driver: DriverRecord) -> DriverRecord:
        registered = self._execute(f"registration of driver {driver.driver_id}", lambda: self.repository.add_driver(driver), None, None)
        return dataclasses.replace(registered)

    def register_route(self, record: RouteRecord) -> RouteRecord:
        registered = self._execute(f"registration of route {record.route_id}", lambda: self.repository.add_route(record), None, None)
        return dataclasses.replace(registered)

    def list_drivers(self) -> list[DriverRecord]:
        drivers = self._execute("driver listing", self.repository.list_drivers, None, None)
        return [dataclasses.replace(driver) for driver in drivers]

    def get_driver(self, driver_id: str) -> DriverRecord | None:
        driver = self._execute(f"lookup of driver {driver_id}", lambda: self.repository.get_driver(driver_id), None, None)
        return dataclasses.replace(driver) if driver is not None else None

    def get_route(self, route_id: str) -> RouteRecord | None:
        record = self._execute(f"lookup of route {route_id}", lambda: self.repository.get_route(route_id), None, None)
        return dataclasses.replace(record) if record is not None else None

    def driver_routes(self, driver_id: str) -> list[RouteRecord]:
        routes = self._execute(
            f"route listing for driver {driver_id}", lambda: self.repository.routes_for_driver(driver_id), None, None
        )
        return [dataclasses.replace(route) for route in routes]


@lru_cache()
def get_scheduler() -> AssignmentScheduler:
    """Process-wide scheduler shared by the API routes."""
    return AssignmentScheduler()
