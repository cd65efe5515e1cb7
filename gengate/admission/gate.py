"""
Admission Gate.

Decides whether a generation request is served from cache, rejected, or
admitted for execution.

Check order (first decisive check wins):
    cache -> rate limit -> quota -> content policy

Sandi Metz Principles:
- Single Responsibility: Admission decision
- Small methods: One method per check
- Dependency Injection: Cache, limiter, moderation injected
"""

import asyncio
from typing import List, Optional

from gengate.admission.counters import WindowLimiter
from gengate.admission.policy import AdmissionPolicy
from gengate.cache.result_cache import ResultCache
from gengate.exceptions import CacheError, CounterStoreError, ModerationError
from gengate.models.cache_entry import CacheEntry
from gengate.models.decision import RejectionReason, RestrictionDecision
from gengate.models.moderation import ModerationResult
from gengate.models.ratelimit import RateLimitInfo, WindowUsage
from gengate.models.request import GenerationRequest
from gengate.moderation.client import BaseModerationClient
from gengate.pipeline.fingerprint import FingerprintEngine, FingerprintKey
from gengate.utils.clock import Clock, utc_now
from gengate.utils.logger import get_logger, log_admission, log_error

logger = get_logger(__name__)

MODERATION_UNAVAILABLE = "moderation_unavailable"

# Suggested client backoff when a backend is down
SERVICE_UNAVAILABLE_RETRY_SECONDS = 5


class AdmissionGate:
    """
    Composite admission decision point.

    Policy denials are returned as decisions, never raised.
    """

    def __init__(
        self,
        limiter: WindowLimiter,
        moderation: BaseModerationClient,
        cache: Optional[ResultCache] = None,
        policy: Optional[AdmissionPolicy] = None,
        fingerprint_engine: Optional[FingerprintEngine] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize gate.

        Args:
            limiter: Window limiter for rate limit and quota counters
            moderation: Content moderation collaborator
            cache: Result cache (cache check skipped if None)
            policy: Admission policy (defaults if None)
            fingerprint_engine: Fingerprint engine (default if None)
            clock: Time source
        """
        self._limiter = limiter
        self._moderation = moderation
        self._cache = cache
        self._policy = policy or AdmissionPolicy()
        self._engine = fingerprint_engine or FingerprintEngine()
        self._clock = clock or utc_now

    @property
    def policy(self) -> AdmissionPolicy:
        """Get admission policy."""
        return self._policy

    async def evaluate(self, request: GenerationRequest) -> RestrictionDecision:
        """
        Evaluate a request.

        Args:
            request: Generation request

        Returns:
            Restriction decision
        """
        key = self._engine.fingerprint(request)
        decision = await self._decide(request, key)
        log_admission(
            request.subject_id,
            decision.allowed,
            reason=decision.reason.value if decision.reason else None,
            cached=decision.is_cache_hit,
            fingerprint=str(key),
            correlation_id=request.correlation_id,
        )
        return decision

    async def refund(self, decision: RestrictionDecision) -> None:
        """
        Give back units consumed by an admission that was not used.

        Args:
            decision: Decision returned by evaluate()
        """
        await self._release(decision.reservations)
        decision.reservations = []

    async def _decide(
        self, request: GenerationRequest, key: FingerprintKey
    ) -> RestrictionDecision:
        try:
            entry = await self._check_cache(key)
        except CacheError as e:
            return self._service_unavailable(e, "cache", request, key)
        if entry is not None:
            return RestrictionDecision.serve_cached(entry.fingerprint, entry.artifact)

        rate_window, quota_window = self._policy.windows_for(request.tier)
        reservations: List[str] = []
        try:
            rate = await self._limiter.try_acquire(request.subject_id, rate_window)
            rate_info = RateLimitInfo.from_state(rate.state, self._clock())
            if not rate.allowed:
                return self._reject_window(RejectionReason.RATE_LIMITED, rate, key, rate_info)
            reservations.append(rate.key)

            quota = await self._limiter.try_acquire(request.subject_id, quota_window)
            if not quota.allowed:
                await self._release(reservations)
                return self._reject_window(
                    RejectionReason.QUOTA_EXCEEDED, quota, key, rate_info
                )
            reservations.append(quota.key)
        except CounterStoreError as e:
            await self._release_quietly(reservations)
            return self._service_unavailable(e, "counters", request, key)

        try:
            moderation = await self._check_content(request)
        except Exception as e:
            await self._release_quietly(reservations)
            log_error(e, "moderation", correlation_id=request.correlation_id)
            raise

        if moderation.flagged:
            await self._release_quietly(reservations)
            return RestrictionDecision.reject(
                RejectionReason.CONTENT_VIOLATION,
                fingerprint=key.value,
                categories=moderation.categories,
                quota_remaining=quota.state.remaining + 1,
            )

        return RestrictionDecision.admit(
            key.value,
            quota_remaining=quota.state.remaining,
            rate_limit=rate_info,
            reservations=reservations,
        )

    async def _check_cache(self, key: FingerprintKey) -> Optional[CacheEntry]:
        """
        Look up a live cache entry.

        Unkeyable requests and a disabled cache always miss.
        """
        if self._cache is None or not self._policy.cache_enabled or not key.is_keyable:
            return None
        return await self._cache.lookup(key.value)

    async def _check_content(self, request: GenerationRequest) -> ModerationResult:
        """
        Run moderation under a hard timeout.

        Outages apply the configured fail-open / fail-closed policy.
        """
        content = request.prompt
        if request.parameters.negative_prompt:
            content = f"{content}\n{request.parameters.negative_prompt}"

        try:
            return await asyncio.wait_for(
                self._moderation.check(content),
                timeout=self._policy.moderation_timeout_seconds,
            )
        except (asyncio.TimeoutError, ModerationError) as e:
            return self._moderation_outage(e, request)

    def _moderation_outage(
        self, error: Exception, request: GenerationRequest
    ) -> ModerationResult:
        logger.warning(
            "Moderation unavailable, applying failure policy",
            policy=self._policy.moderation_failure_policy,
            provider=self._moderation.get_name(),
            error=str(error) or type(error).__name__,
            correlation_id=request.correlation_id,
        )
        if self._policy.fails_closed:
            return ModerationResult(flagged=True, categories=[MODERATION_UNAVAILABLE])
        return ModerationResult.clean()

    def _reject_window(
        self,
        reason: RejectionReason,
        usage: WindowUsage,
        key: FingerprintKey,
        rate_info: RateLimitInfo,
    ) -> RestrictionDecision:
        now = self._clock()
        return RestrictionDecision.reject(
            reason,
            fingerprint=key.value,
            reset_at=usage.state.window_reset_at,
            retry_after=usage.state.seconds_until_reset(now),
            quota_remaining=usage.state.remaining
            if reason is RejectionReason.QUOTA_EXCEEDED
            else None,
            rate_limit=rate_info,
        )

    def _service_unavailable(
        self,
        error: Exception,
        component: str,
        request: GenerationRequest,
        key: FingerprintKey,
    ) -> RestrictionDecision:
        log_error(
            error,
            f"admission:{component}",
            subject_id=request.subject_id,
            correlation_id=request.correlation_id,
        )
        return RestrictionDecision.reject(
            RejectionReason.SERVICE_UNAVAILABLE,
            fingerprint=key.value,
            retry_after=SERVICE_UNAVAILABLE_RETRY_SECONDS,
        )

    async def _release(self, keys: List[str]) -> None:
        for key in keys:
            await self._limiter.release(key)

    async def _release_quietly(self, keys: List[str]) -> None:
        """Release reservations while already handling a fault."""
        try:
            await self._release(keys)
        except CounterStoreError as e:
            logger.error("Counter release failed", keys=keys, error=str(e))
