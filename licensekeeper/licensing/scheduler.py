"""
Leadership-aware license renewal.

The scheduler owns one background task per process.  The task sleeps until the
next renewal is due or until a leadership change wakes it, then runs tick(),
which re-evaluates renewal ownership and, if this instance is the owner,
calls the license authority and installs the result in the store.

States:
    IDLE       - not started, or shut down
    SCHEDULED  - waiting for the next regular renewal
    RENEWING   - an authority call is in flight
    BACKOFF    - waiting to retry after a failed renewal

All authority calls (renew, reload, activate) go through one asyncio lock, so
at most one is in flight at any time.  Every call takes its store version
before it starts; a call that finishes late can therefore never overwrite the
result of a call that started after it.
"""

import asyncio
import inspect
import time
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Optional

from licensekeeper.licensing.authority import (
    CertificateSink,
    LicenseAuthority,
    RenewalAttempt,
)
from licensekeeper.licensing.errors import (
    AuthorityError,
    LeadershipUnknown,
    LicenseServiceShutDown,
    StaleReplaceRejected,
    TerminalAuthorityError,
    TransientAuthorityError,
)
from licensekeeper.licensing.leadership import (
    LeadershipSignal,
    LeadershipStatus,
    StaticLeadershipSignal,
    renewal_skip_reason,
)
from licensekeeper.licensing.settings import RenewalSettings
from licensekeeper.licensing.snapshot import EntitlementGrant, EntitlementSnapshot
from licensekeeper.licensing.store import EntitlementStore
from licensekeeper.utils.verbosity_logger import get_logger, sanitize_log

logger = get_logger("licensekeeper.licensing.scheduler")


class SchedulerState(str, Enum):
    """Renewal scheduler states."""

    IDLE = "idle"
    SCHEDULED = "scheduled"
    RENEWING = "renewing"
    BACKOFF = "backoff"


class RenewalScheduler:
    """
    Drives periodic renewal of the shared license for one instance.
    """

    def __init__(
        self,
        store: EntitlementStore,
        authority: LicenseAuthority,
        settings: RenewalSettings,
        leadership: Optional[LeadershipSignal] = None,
        certificate_sink: Optional[CertificateSink] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self._authority = authority
        self._settings = settings
        self._leadership = leadership or StaticLeadershipSignal()
        self._certificate_sink = certificate_sink
        self._clock = clock

        self._state = SchedulerState.IDLE
        self._lock = asyncio.Lock()
        self._wake = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._timer_task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Future] = None
        self._sink_futures: set = set()

        self._pushed_status: Optional[LeadershipStatus] = None
        self._was_owner = False
        self._failures = 0
        self._next_due_at: Optional[float] = None
        self._retry_not_before: Optional[float] = None
        self._initialized = False
        self._subscribed = False
        self._shutting_down = False

        self.last_attempt: Optional[RenewalAttempt] = None
        self.last_successful_renewal: Optional[datetime] = None
        self.last_error: Optional[AuthorityError] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._failures

    @property
    def next_due_in(self) -> Optional[float]:
        """Seconds until the timer fires, None when nothing is armed."""
        if self._next_due_at is None:
            return None
        return max(self._next_due_at - self._clock(), 0.0)

    # Leadership

    def notify_leadership_change(self, status: LeadershipStatus) -> None:
        """
        Record a new leadership status and wake the timer.

        Only the latest status is kept, and it stays in force until the next
        notification; a status that arrives while an authority call is in
        flight is evaluated once that call completes.  Safe to call from
        threads other than the event loop's.
        """
        self._pushed_status = LeadershipStatus(status)
        logger.debug("Leadership status changed to %s", self._pushed_status.value)

        loop = self._loop
        if loop is None or loop.is_closed():
            self._wake.set()
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._wake.set()
        else:
            loop.call_soon_threadsafe(self._wake.set)

    def _current_leadership(self) -> LeadershipStatus:
        # A pushed status overrides the signal until a newer one is pushed
        if self._pushed_status is not None:
            return self._pushed_status
        return LeadershipStatus(self._leadership.current_status())

    def _skip_reason(self, status: LeadershipStatus) -> Optional[str]:
        return renewal_skip_reason(
            self._settings.instance_role,
            self._settings.multi_instance_enabled,
            status,
            self._settings.auto_renew_enabled,
        )

    def _log_skip(self, status: LeadershipStatus, reason: str) -> None:
        if self._settings.multi_instance_enabled and status == LeadershipStatus.UNSET:
            logger.debug("Renewal skipped: %s", LeadershipUnknown(reason))
        else:
            logger.debug("Renewal skipped: %s", reason)

    # Lifecycle

    async def init(self, force_recreate: bool = False) -> Optional[RenewalAttempt]:
        """
        Load entitlements once, then arm the renewal timer.

        The renewal owner renews; every other instance reloads the license the
        owner last persisted.  Failures are logged and leave the previous
        snapshot in place.  Calling init() again is a no-op unless
        force_recreate is set, in which case backoff state is reset and the
        timer restarted.
        """
        if self._initialized and not force_recreate:
            logger.debug("Renewal scheduler already initialized")
            return self.last_attempt
        if self._shutting_down:
            raise LicenseServiceShutDown("License service is shutting down")

        await self._stop_timer()
        self._loop = asyncio.get_running_loop()
        if not self._subscribed:
            self._leadership.subscribe(self.notify_leadership_change)
            self._subscribed = True

        self._failures = 0
        self._retry_not_before = None
        self._next_due_at = None

        async with self._lock:
            status = self._current_leadership()
            reason = self._skip_reason(status)
            if reason is None:
                self._was_owner = True
                attempt = await self._attempt("renew", self._renew_call)
                delay = self._after_renewal(attempt)
            else:
                self._was_owner = False
                self._log_skip(status, reason)
                attempt = await self._attempt("reload", self._authority.reload)
                if attempt.error:
                    logger.warning(
                        "License reload failed: %s", sanitize_log(attempt.error)
                    )
                delay = self._arm(SchedulerState.SCHEDULED, self._settings.tick_interval)

        self._initialized = True
        self._timer_task = asyncio.create_task(self._run(delay))
        logger.info(
            "Renewal scheduler initialized: state=%s, next tick in %.0fs",
            self._state.value,
            delay,
        )
        return attempt

    async def reinit(self) -> Optional[RenewalAttempt]:
        """Redo the full load path, e.g. after the license key changed."""
        return await self.init(force_recreate=True)

    async def shutdown(self, grace: Optional[float] = None) -> None:
        """
        Stop renewing.  The timer is cancelled at once; an authority call in
        flight gets `grace` seconds to finish and is abandoned after that.
        A late result still goes through the store's version check.
        """
        if grace is None:
            grace = self._settings.shutdown_grace
        self._shutting_down = True
        await self._stop_timer()

        inflight = self._inflight
        if inflight is not None and not inflight.done():
            done, _ = await asyncio.wait({inflight}, timeout=grace)
            if not done:
                logger.warning(
                    "Abandoning in-flight license call after %.1fs grace period", grace
                )

        self._state = SchedulerState.IDLE
        self._next_due_at = None
        logger.info("Renewal scheduler shut down")

    async def _stop_timer(self) -> None:
        task, self._timer_task = self._timer_task, None
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    # Timer

    async def _run(self, delay: float) -> None:
        while not self._shutting_down:
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
            self._wake.clear()
            if self._shutting_down:
                break
            try:
                delay = await self.tick()
            except Exception as e:
                # A broken collaborator must not stop renewals for good
                logger.error("Renewal tick failed: %s", sanitize_log(e))
                delay = self._arm(SchedulerState.BACKOFF, self._settings.backoff_initial)

    async def tick(self) -> float:
        """
        Run one scheduling decision and return the delay until the next one.

        - Not the owner: no authority call, re-armed for the next interval.
        - Owner but the timer is not due (woken by a leadership change while
          already the owner, or still backing off): keep waiting.
        - Owner and due, or just became the owner: renew.
        """
        if self._shutting_down:
            return 0.0

        async with self._lock:
            now = self._clock()
            status = self._current_leadership()
            reason = self._skip_reason(status)

            if reason is not None:
                if self._was_owner:
                    logger.info("No longer the renewal owner: %s", reason)
                self._log_skip(status, reason)
                self._was_owner = False
                self._failures = 0
                return self._arm(SchedulerState.SCHEDULED, self._settings.tick_interval)

            due = self._next_due_at is None or now >= self._next_due_at
            newly_owner = not self._was_owner
            if not due and not (newly_owner and self._state == SchedulerState.SCHEDULED):
                return self._next_due_at - now
            if self._retry_not_before is not None and now < self._retry_not_before:
                # The authority asked us to hold off; ownership changes do not override that
                return self._arm(self._state, self._retry_not_before - now)

            if newly_owner:
                logger.info("Became the renewal owner (status=%s)", status.value)
            self._was_owner = True
            attempt = await self._attempt("renew", self._renew_call)
            return self._after_renewal(attempt)

    def _arm(self, state: SchedulerState, delay: float) -> float:
        delay = max(delay, 0.0)
        self._state = state
        self._next_due_at = self._clock() + delay
        return delay

    def _after_renewal(self, attempt: RenewalAttempt) -> float:
        if attempt.succeeded:
            self._failures = 0
            self._retry_not_before = None
            return self._arm(SchedulerState.SCHEDULED, self._settings.tick_interval)

        if isinstance(attempt.error, TerminalAuthorityError):
            self._failures = 0
            logger.warning(
                "License renewal rejected, keeping last-known entitlements "
                "(version %d): %s",
                self._store.version,
                sanitize_log(attempt.error),
            )
            return self._arm(SchedulerState.BACKOFF, self._settings.tick_interval)

        self._failures += 1
        delay = min(
            self._settings.backoff_initial * 2 ** (self._failures - 1),
            self._settings.backoff_max,
        )
        retry_after = attempt.retry_after
        if retry_after:
            delay = max(delay, retry_after)
            self._retry_not_before = self._clock() + retry_after
        logger.warning(
            "License renewal failed (attempt %d), retrying in %.1fs: %s",
            self._failures,
            delay,
            sanitize_log(attempt.error),
        )
        return self._arm(SchedulerState.BACKOFF, delay)

    # Authority calls

    async def _renew_call(self) -> EntitlementGrant:
        return await self._authority.renew(
            self._settings.instance_id, self._settings.tenant_id
        )

    async def _attempt(
        self, operation: str, call: Callable[[], Awaitable[EntitlementGrant]]
    ) -> RenewalAttempt:
        """
        Run one authority call.  Must be called with self._lock held.

        The call runs in its own task so that cancelling the caller (shutdown)
        does not cancel the call itself.
        """
        if self._shutting_down:
            raise LicenseServiceShutDown("License service is shutting down")

        # A cancelled caller (timer stopped by reinit) leaves its call running
        # without the lock; it must finish before the next one starts
        previous = self._inflight
        if previous is not None and not previous.done():
            logger.debug("Waiting for the previous license call to finish")
            await asyncio.wait({previous})
            if self._shutting_down:
                raise LicenseServiceShutDown("License service is shutting down")

        attempt = RenewalAttempt.start(operation, self._store.next_version())
        previous_state = self._state
        self._state = SchedulerState.RENEWING
        self._inflight = asyncio.ensure_future(self._perform(attempt, call))
        try:
            return await asyncio.shield(self._inflight)
        finally:
            if self._state == SchedulerState.RENEWING:
                self._state = previous_state

    async def _perform(
        self, attempt: RenewalAttempt, call: Callable[[], Awaitable[EntitlementGrant]]
    ) -> RenewalAttempt:
        logger.debug("License %s started (version %d)", attempt.operation, attempt.version)
        try:
            grant = await call()
        except AuthorityError as e:
            attempt.error = e
        except Exception as e:
            logger.error(
                "Unexpected error during license %s: %s",
                attempt.operation,
                sanitize_log(e),
            )
            attempt.error = TransientAuthorityError(str(e))

        if attempt.error is not None:
            self.last_error = attempt.error
            self.last_attempt = attempt
            return attempt

        attempt.snapshot = grant.to_snapshot(attempt.version)
        attempt.installed = self._install(attempt.snapshot)
        self.last_attempt = attempt
        return attempt

    def _install(self, snapshot: EntitlementSnapshot) -> bool:
        try:
            self._store.replace(snapshot, strict=True)
        except StaleReplaceRejected as e:
            logger.debug("Discarded out-of-order snapshot: %s", e)
            return False

        self.last_successful_renewal = snapshot.fetched_at
        self.last_error = None
        logger.info(
            "Installed entitlements version %d (plan=%s)",
            snapshot.version,
            sanitize_log(snapshot.plan_name),
        )
        if snapshot.certificate and self._certificate_sink is not None:
            self._persist_certificate(snapshot.certificate)
        return True

    def _persist_certificate(self, certificate: str) -> None:
        """Hand the certificate to the sink without waiting for it."""
        sink = self._certificate_sink
        if inspect.iscoroutinefunction(sink):
            future = asyncio.ensure_future(sink(certificate))
        else:
            future = asyncio.get_running_loop().run_in_executor(None, sink, certificate)
        self._sink_futures.add(future)
        future.add_done_callback(self._certificate_persisted)

    def _certificate_persisted(self, future: asyncio.Future) -> None:
        self._sink_futures.discard(future)
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error("Failed to persist license certificate: %s", sanitize_log(error))

    # One-shot operations

    async def activate(self, activation_key: str) -> EntitlementSnapshot:
        """
        Activate a license key and install the result.

        Raises:
            TransientAuthorityError / TerminalAuthorityError: activation failed
            LicenseServiceShutDown: called after shutdown began
        """
        if self._shutting_down:
            raise LicenseServiceShutDown("License service is shutting down")
        async with self._lock:
            attempt = await self._attempt(
                "activate", lambda: self._authority.activate(activation_key)
            )
        if attempt.error is not None:
            raise attempt.error
        return attempt.snapshot

    async def reload(self) -> RenewalAttempt:
        """Reload the persisted license; failures are logged, not raised."""
        if self._shutting_down:
            raise LicenseServiceShutDown("License service is shutting down")
        async with self._lock:
            attempt = await self._attempt("reload", self._authority.reload)
        if attempt.error is not None:
            logger.warning("License reload failed: %s", sanitize_log(attempt.error))
        return attempt

    async def renew_now(self) -> Optional[RenewalAttempt]:
        """
        Renew immediately if this instance is the owner.

        Returns None when this instance is not the owner.

        Raises:
            LeadershipUnknown: multi-instance mode and the election has not settled
        """
        if self._shutting_down:
            raise LicenseServiceShutDown("License service is shutting down")
        async with self._lock:
            status = self._current_leadership()
            reason = self._skip_reason(status)
            if reason is not None:
                self._was_owner = False
                if (
                    self._settings.multi_instance_enabled
                    and status == LeadershipStatus.UNSET
                ):
                    raise LeadershipUnknown(reason)
                self._log_skip(status, reason)
                return None
            self._was_owner = True
            attempt = await self._attempt("renew", self._renew_call)
            self._after_renewal(attempt)
        # Let the timer pick up the new due time
        self._wake.set()
        return attempt
