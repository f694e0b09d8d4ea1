# src/resolution/orchestrator.py - v1
"""Multi-tier resolution orchestrator.

State machine:

    START -> CACHE -> TIER_1 -> TIER_2 -> TIER_3 -> TIER_4 -> {SUCCESS, FAILURE}

The identity cache is checked first. On a miss, tiers run in order and
the first answer at or above min_confidence wins; tier 4 is terminal and
wins at any confidence. Transient tier errors and NotFoundError fall
through to the next tier; any other error aborts the request. A
progress event is emitted before each tier that applies, and exactly one
terminal event closes the session.

resolve() never raises for domain failures: the caller always gets a
ResolutionOutcome.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from enum import Enum

from shelfscan.cache.fingerprint import short_key
from shelfscan.cache.identity_cache import IdentityCache
from shelfscan.core.errors import ErrorKind, NotFoundError, ShelfScanError, is_transient
from shelfscan.core.models import (
    ErrorInfo,
    ProductIdentity,
    ResolutionOutcome,
    ResolutionRequest,
    ResolutionResult,
    TierAttempt,
    WriteOutcome,
)
from shelfscan.logging.context import set_request_context, set_tier_context
from shelfscan.progress.models import ProgressStage
from shelfscan.progress.session import ProgressEmitter
from shelfscan.resolution.consistency import CrossStoreWriter
from shelfscan.resolution.context import ResolutionContext
from shelfscan.resolution.tiers.base_tier import ResolutionTier
from shelfscan.storage.base_repository import BaseProductRepository
from shelfscan.tracking.event_sink import EventSink, safe_record
from shelfscan.tracking.models import SinkEvent

logger = logging.getLogger(__name__)

DEFAULT_MIN_CONFIDENCE = 0.5
DEFAULT_LOW_CONFIDENCE_WARNING = 0.8
RETAKE_PHOTO_THRESHOLD = 0.6


class ResolutionState(str, Enum):
    START = "start"
    CACHE = "cache"
    TIER_1 = "tier_1"
    TIER_2 = "tier_2"
    TIER_3 = "tier_3"
    TIER_4 = "tier_4"
    SUCCESS = "success"
    FAILURE = "failure"

    @classmethod
    def for_tier(cls, tier: int) -> ResolutionState:
        return cls(f"tier_{tier}")


class ResolutionOrchestrator:
    def __init__(
        self,
        identity_cache: IdentityCache,
        tiers: Sequence[ResolutionTier],
        writer: CrossStoreWriter,
        repository: BaseProductRepository,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
        low_confidence_warning: float = DEFAULT_LOW_CONFIDENCE_WARNING,
        event_sink: EventSink | None = None,
    ) -> None:
        self._cache = identity_cache
        self._tiers = sorted(tiers, key=lambda t: t.tier)
        self._writer = writer
        self._repository = repository
        self._min_confidence = min_confidence
        self._low_confidence_warning = low_confidence_warning
        self._sink = event_sink

    @property
    def tiers(self) -> list[ResolutionTier]:
        return list(self._tiers)

    async def resolve(
        self,
        request: ResolutionRequest,
        emitter: ProgressEmitter | None = None,
    ) -> ResolutionOutcome:
        emitter = emitter or ProgressEmitter.detached(request.session_id)
        session_id = emitter.session_id
        set_request_context(session_id, request_id=request.session_id)
        started = time.monotonic()
        attempts: list[TierAttempt] = []
        state = ResolutionState.START

        try:
            ctx = ResolutionContext.from_request(request)
        except ShelfScanError as e:
            return self._fail(emitter, ErrorInfo.from_exception(e), attempts, started, state)

        state = self._transition(state, ResolutionState.CACHE)
        cached = await self._check_cache(ctx)
        if cached is not None:
            return self._succeed(emitter, cached, attempts, started, state)

        result: ResolutionResult | None = None
        transient_errors: list[BaseException] = []
        for tier in self._tiers:
            if not tier.applies(ctx):
                attempts.append(TierAttempt(tier=tier.tier, status="not_applicable"))
                continue

            state = self._transition(state, ResolutionState.for_tier(tier.tier))
            stage = ProgressStage.for_tier(tier.tier)
            set_tier_context(tier.tier, stage.value)
            emitter.emit(stage, f"Trying {tier.description}", {"tier": tier.tier})

            tier_started = time.monotonic()
            try:
                candidate = await tier.attempt(ctx)
            except NotFoundError as e:
                attempts.append(self._attempt(tier, "not_found", tier_started, error=e))
                logger.info("Tier %d: %s", tier.tier, e.message)
                continue
            except Exception as e:
                if is_transient(e):
                    transient_errors.append(e)
                    attempts.append(self._attempt(tier, "transient_error", tier_started, error=e))
                    logger.warning("Tier %d unavailable, falling through: %s", tier.tier, e)
                    safe_record(self._sink, SinkEvent(
                        name="tier_transient_error",
                        level="warning",
                        session_id=session_id,
                        data={"tier": tier.tier, "error": str(e), "type": type(e).__name__},
                    ))
                    continue
                attempts.append(self._attempt(tier, "failed", tier_started, error=e))
                logger.error("Tier %d failed fatally: %s", tier.tier, e, exc_info=not isinstance(e, ShelfScanError))
                return self._fail(
                    emitter, ErrorInfo.from_exception(e, tier=tier.tier), attempts, started, state
                )

            if candidate is None:
                attempts.append(self._attempt(tier, "no_match", tier_started))
                continue
            if candidate.confidence < self._min_confidence and not tier.terminal:
                attempts.append(
                    self._attempt(tier, "below_threshold", tier_started, confidence=candidate.confidence)
                )
                logger.info(
                    "Tier %d confidence %.2f below %.2f, falling through",
                    tier.tier, candidate.confidence, self._min_confidence,
                )
                continue

            attempts.append(self._attempt(tier, "resolved", tier_started, confidence=candidate.confidence))
            result = candidate
            break

        set_tier_context(None)
        if result is None:
            return self._fail(
                emitter, self._exhausted(transient_errors), attempts, started, state
            )

        result, consistency, write_warning = await self._write_back(ctx, result, session_id)
        warning = " ".join(w for w in (self._warning(result), write_warning) if w) or None
        return self._succeed(
            emitter, result, attempts, started, state, warning=warning, consistency=consistency
        )

    # --- Cache ---

    async def _check_cache(self, ctx: ResolutionContext) -> ResolutionResult | None:
        for key in ctx.cache_keys:
            try:
                lookup = await self._cache.lookup(key)
            except Exception:
                logger.warning("Identity cache read failed for %s; treating as miss", short_key(key), exc_info=True)
                continue
            if lookup.found:
                entry = lookup.entry
                logger.info("Identity cache hit for %s (tier %d)", short_key(key), entry.tier)
                return ResolutionResult(
                    identity=entry.identity, tier=entry.tier, confidence=entry.confidence, cached=True
                )
        return None

    # --- Write-back ---

    async def _write_back(
        self,
        ctx: ResolutionContext,
        result: ResolutionResult,
        session_id: str,
    ) -> tuple[ResolutionResult, WriteOutcome, str | None]:
        identity = result.identity
        if ctx.barcode and ctx.barcode_absent and not identity.barcode:
            identity = identity.model_copy(update={"barcode": ctx.barcode})

        persist = await self._needs_persist(identity, ctx)
        report = await self._writer.update_identity_and_cache(
            identity,
            ctx.cache_keys,
            tier=result.tier,
            confidence=result.confidence,
            persist=persist,
            session_id=session_id,
        )
        if report.identity is None:
            return (
                result.model_copy(update={"identity": identity}),
                report.outcome,
                "Product identified but could not be saved; it will be looked up again next time.",
            )
        return result.model_copy(update={"identity": report.identity}), report.outcome, None

    async def _needs_persist(self, identity: ProductIdentity, ctx: ResolutionContext) -> bool:
        """Persist only new or materially changed identities."""
        if not identity.is_persisted:
            return True
        if identity.id == ctx.persisted_identity_id:
            return False
        try:
            stored = await self._repository.find_by_id(identity.id)
        except Exception:
            logger.warning("Could not read product %s before write-back", identity.id, exc_info=True)
            return True
        return stored is None or identity.materially_differs(stored)

    # --- Outcomes ---

    def _warning(self, result: ResolutionResult) -> str | None:
        if result.cached or result.confidence >= self._low_confidence_warning:
            return None
        if result.tier == 4 and result.confidence < RETAKE_PHOTO_THRESHOLD:
            return (
                f"Low confidence identification ({result.confidence:.0%}). "
                "Consider retaking the photo with the label clearly visible."
            )
        return f"Identification confidence is {result.confidence:.0%}. Please verify the product details."

    @staticmethod
    def _exhausted(transient_errors: list[BaseException]) -> ErrorInfo:
        if transient_errors:
            return ErrorInfo(
                code="TIERS_UNAVAILABLE",
                kind=ErrorKind.TRANSIENT,
                message=f"Product could not be identified; {len(transient_errors)} tier(s) were unavailable",
                retryable=True,
            )
        return ErrorInfo(
            code="NOT_FOUND",
            kind=ErrorKind.NOT_FOUND,
            message="Product could not be identified by any tier",
            retryable=False,
        )

    def _succeed(
        self,
        emitter: ProgressEmitter,
        result: ResolutionResult,
        attempts: list[TierAttempt],
        started: float,
        state: ResolutionState,
        warning: str | None = None,
        consistency: WriteOutcome | None = None,
    ) -> ResolutionOutcome:
        self._transition(state, ResolutionState.SUCCESS)
        elapsed_ms = (time.monotonic() - started) * 1000
        emitter.complete(
            "Product identified",
            {
                "product_id": result.identity.id,
                "name": result.identity.name,
                "tier": result.tier,
                "confidence": result.confidence,
                "cached": result.cached,
                "warning": warning,
            },
        )
        logger.info(
            "Resolved %r via tier %d (confidence %.2f%s) in %.0fms",
            result.identity.name, result.tier, result.confidence,
            ", cached" if result.cached else "", elapsed_ms,
        )
        return ResolutionOutcome(
            success=True,
            session_id=emitter.session_id,
            result=result,
            attempts=attempts,
            warning=warning,
            consistency=consistency,
            processing_time_ms=elapsed_ms,
        )

    def _fail(
        self,
        emitter: ProgressEmitter,
        error: ErrorInfo,
        attempts: list[TierAttempt],
        started: float,
        state: ResolutionState,
    ) -> ResolutionOutcome:
        self._transition(state, ResolutionState.FAILURE)
        set_tier_context(None)
        elapsed_ms = (time.monotonic() - started) * 1000
        emitter.fail(
            error.message,
            retryable=error.retryable,
            payload={"code": error.code, "kind": error.kind.value, "tier": error.tier},
        )
        safe_record(self._sink, SinkEvent(
            name="resolution_failed",
            level="error" if error.kind is ErrorKind.DATA_CONSISTENCY else "warning",
            session_id=emitter.session_id,
            data={**error.model_dump(mode="json"), "attempts": [a.model_dump(mode="json") for a in attempts]},
        ))
        logger.warning("Resolution failed [%s]: %s", error.code, error.message)
        return ResolutionOutcome(
            success=False,
            session_id=emitter.session_id,
            error=error,
            attempts=attempts,
            processing_time_ms=elapsed_ms,
        )

    @staticmethod
    def _attempt(
        tier: ResolutionTier,
        status: str,
        started: float,
        confidence: float | None = None,
        error: BaseException | None = None,
    ) -> TierAttempt:
        return TierAttempt(
            tier=tier.tier,
            status=status,
            confidence=confidence,
            error=str(error) if error is not None else None,
            duration_ms=(time.monotonic() - started) * 1000,
        )

    @staticmethod
    def _transition(current: ResolutionState, target: ResolutionState) -> ResolutionState:
        logger.debug("%s -> %s", current.value, target.value)
        return target
