"""
Conversion workflow.

Drives a single conversion request for one session:

    idle -> file_selected -> ready_to_convert -> converting -> succeeded | failed

clear() returns to idle from anywhere except converting. Login/upgrade
requirements come back as SubmitOutcome values, never as exceptions, so the
presentation layer decides how to surface them.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

import structlog

from app.errors import (
    ConversionExecutionError,
    InvalidTargetError,
    InvalidTransitionError,
    UnsupportedFormatError,
)
from app.models.account import Decision, Principal, UserProfile
from app.models.conversion import (
    ConversionRecord,
    ConversionRequest,
    ConversionState,
    ConvertedFile,
    FileDescriptor,
    FormatKey,
    OutcomeKind,
    SubmitOutcome,
)
from app.services.converter import ConversionExecutor
from app.services.eligibility import ConversionEligibilityPolicy
from app.services.format_registry import conversion_targets, detect_format, output_filename
from app.services.quota_ledger import QuotaLedger
from app.services.records import ConversionRecordStore

logger = structlog.get_logger(__name__)

DENIAL_OUTCOMES: dict[Decision, OutcomeKind] = {
    Decision.REQUIRES_LOGIN: OutcomeKind.REQUIRES_LOGIN,
    Decision.REQUIRES_UPGRADE: OutcomeKind.REQUIRES_UPGRADE,
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ConversionWorkflow:
    """Per-session state machine for one conversion request."""

    def __init__(
        self,
        policy: ConversionEligibilityPolicy,
        ledger: QuotaLedger,
        records: ConversionRecordStore,
        converter: ConversionExecutor,
        *,
        count_premium_conversions: bool = True,
        now_provider=_utcnow,
    ) -> None:
        self.policy = policy
        self.ledger = ledger
        self.records = records
        self.converter = converter
        self.count_premium_conversions = count_premium_conversions
        self.now_provider = now_provider

        self._state = ConversionState.IDLE
        self._request: ConversionRequest | None = None
        self._content: bytes = b""
        self._output: ConvertedFile | None = None
        self._retryable = False
        self._last_error: str | None = None

    @property
    def state(self) -> ConversionState:
        return self._state

    @property
    def request(self) -> ConversionRequest | None:
        return self._request

    @property
    def output(self) -> ConvertedFile | None:
        return self._output

    @property
    def retryable(self) -> bool:
        return self._retryable

    @property
    def last_error(self) -> str | None:
        return self._last_error

    def _require(self, operation: str, *states: ConversionState) -> None:
        if self._state not in states:
            raise InvalidTransitionError(operation, self._state.value)

    def _reset(self) -> None:
        self._request = None
        self._content = b""
        self._output = None
        self._retryable = False
        self._last_error = None

    def select_file(self, file: FileDescriptor, content: bytes = b"") -> ConversionRequest:
        """Accept a file, replacing any previous request.

        Raises:
            UnsupportedFormatError: extension not in the format table; state unchanged.
        """
        if self._state == ConversionState.CONVERTING:
            raise InvalidTransitionError("select_file", self._state.value)

        source = detect_format(file.name)
        if source is None:
            logger.info("file_rejected_unsupported_format", filename=file.name)
            raise UnsupportedFormatError(file.name)

        if self._request is not None:
            logger.debug("conversion_request_discarded", previous=self._request.file.name)
        self._reset()
        self._request = ConversionRequest(
            file=file.model_copy(update={"detected_format": source}),
            source_format=source,
        )
        self._content = content
        self._state = ConversionState.FILE_SELECTED
        logger.info(
            "file_selected",
            filename=file.name,
            size_bytes=file.size_bytes,
            source_format=source.value,
        )
        return self._request

    def choose_target(self, target: FormatKey) -> ConversionRequest:
        self._require("choose_target", ConversionState.FILE_SELECTED, ConversionState.READY_TO_CONVERT)
        source = self._request.source_format
        if target == source or target not in conversion_targets(source):
            raise InvalidTargetError(
                f"Cannot convert {source.value} to {target.value}"
            )
        self._request.target_format = target
        self._state = ConversionState.READY_TO_CONVERT
        return self._request

    def clear(self) -> None:
        if self._state == ConversionState.CONVERTING:
            raise InvalidTransitionError("clear", self._state.value)
        self._reset()
        self._state = ConversionState.IDLE

    def _fail(
        self,
        kind: OutcomeKind,
        decision: Decision,
        *,
        retryable: bool,
        error: str | None = None,
    ) -> SubmitOutcome:
        self._state = ConversionState.FAILED
        self._retryable = retryable
        self._last_error = error
        return SubmitOutcome(
            kind=kind,
            state=self._state,
            decision=decision,
            retryable=retryable,
            error=error,
        )

    async def submit(self, principal: Principal, profile: UserProfile) -> SubmitOutcome:
        """Check eligibility, run the conversion and commit record + quota.

        Valid from ready_to_convert, and from failed while the failure is
        retryable (the request is kept, no re-selection needed).
        """
        can_retry = self._state == ConversionState.FAILED and self._retryable
        if self._state != ConversionState.READY_TO_CONVERT and not can_retry:
            raise InvalidTransitionError("submit", self._state.value)

        decision = self.policy.evaluate(principal, profile)
        if decision != Decision.ALLOWED:
            logger.info("conversion_denied", decision=decision.value, user_id=principal.id)
            return SubmitOutcome(
                kind=DENIAL_OUTCOMES[decision],
                state=self._state,
                decision=decision,
                retryable=self._retryable,
            )

        request = self._request
        self._state = ConversionState.CONVERTING
        self._last_error = None
        try:
            converted = await self.converter.convert(
                self._content,
                request.file.name,
                request.source_format,
                request.target_format,
            )
        except ConversionExecutionError as e:
            logger.warning("conversion_execution_failed", filename=request.file.name, error=str(e))
            return self._fail(OutcomeKind.CONVERSION_FAILED, decision, retryable=True, error=str(e))
        except asyncio.CancelledError:
            self._fail(OutcomeKind.CONVERSION_FAILED, decision, retryable=True, error="cancelled")
            raise
        except Exception as e:
            logger.exception("conversion_execution_error", filename=request.file.name)
            return self._fail(OutcomeKind.CONVERSION_FAILED, decision, retryable=True, error=str(e))

        return await self._commit(principal, request, converted)

    async def _commit(
        self,
        principal: Principal,
        request: ConversionRequest,
        converted: ConvertedFile,
    ) -> SubmitOutcome:
        # The profile passed to submit() may be stale by now; re-check against
        # the store under the per-user guard before counting the conversion.
        async with self.ledger.guard(principal.id or ""):
            try:
                current = await self.ledger.get_profile(principal)
            except Exception as e:
                logger.exception("conversion_profile_reload_failed", user_id=principal.id)
                return self._fail(
                    OutcomeKind.PERSISTENCE_FAILED, Decision.ALLOWED, retryable=True, error=str(e)
                )

            decision = self.policy.evaluate(principal, current)
            if decision != Decision.ALLOWED:
                logger.warning(
                    "conversion_commit_denied",
                    user_id=principal.id,
                    decision=decision.value,
                    conversion_count=current.conversion_count,
                )
                return self._fail(DENIAL_OUTCOMES[decision], decision, retryable=True)

            record = ConversionRecord(
                principal_id=principal.id,
                original_filename=request.file.name,
                original_format=request.source_format,
                target_format=request.target_format,
                file_size=request.file.size_bytes,
                timestamp=self.now_provider(),
            )
            try:
                await self.records.append(record)
            except Exception as e:
                logger.exception("conversion_record_append_failed", user_id=principal.id)
                return self._fail(
                    OutcomeKind.PERSISTENCE_FAILED, decision, retryable=False, error=str(e)
                )

            updated = current
            if self.count_premium_conversions or not current.is_premium:
                try:
                    updated = await self.ledger.increment(principal)
                except Exception as e:
                    # Record written but not counted; needs manual reconciliation.
                    logger.exception(
                        "conversion_quota_increment_failed",
                        user_id=principal.id,
                        original_filename=record.original_filename,
                        timestamp=record.timestamp.isoformat(),
                    )
                    return self._fail(
                        OutcomeKind.PERSISTENCE_FAILED, decision, retryable=False, error=str(e)
                    )

        name = output_filename(request.file.name, request.target_format)
        self._output = converted.model_copy(update={"filename": name})
        self._state = ConversionState.SUCCEEDED
        logger.info(
            "conversion_succeeded",
            user_id=principal.id,
            output_filename=name,
            conversion_count=updated.conversion_count,
        )
        return SubmitOutcome(
            kind=OutcomeKind.COMPLETED,
            state=self._state,
            decision=decision,
            output_filename=name,
            record=record,
            conversion_count=updated.conversion_count,
        )

    async def download(
        self,
        deliver: Callable[[ConvertedFile], Awaitable[None]] | None = None,
    ) -> ConvertedFile:
        """Hand the converted file to the delivery callback and reset to idle."""
        self._require("download", ConversionState.SUCCEEDED)
        output = self._output
        if deliver is not None:
            await deliver(output)
        self.clear()
        logger.info("conversion_downloaded", filename=output.filename)
        return output
