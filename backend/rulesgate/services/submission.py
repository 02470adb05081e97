"""Agreement submission: validate, number, store.

Flow for one submit:
  1. The form's gate must already be unlocked (caller bug otherwise).
  2. Reject if this form already signed or has a submission in flight.
  3. Normalize names, collect every validation problem at once.
  4. Up to `max_attempts` times: generate a confirmation code and insert.
       OK     → done
       RETRY  → the code collided with an existing one, draw another
       ERROR  → any other store failure, give up immediately
  5. Mark the signature step on the gate, still holding the in-flight slot,
     and hand back the stored record. A stored agreement is never reported
     as a failure, even if the signed flag cannot be written.

Steps 1-3 happen before any I/O, so a rejected or failed submission never
touches the gate's progress and the form stays resubmittable.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from rulesgate.middleware.exceptions import (
    AgreementValidationError,
    AlreadySignedError,
    GateViolationError,
    SubmissionError,
    SubmissionErrorKind,
    SubmissionInFlightError,
)
from rulesgate.schemas.agreement import AgreementInput, AgreementRecord, FieldError
from rulesgate.services.progress_gate import ProgressGate
from rulesgate.stores.base import AgreementStore, StoreError, UniqueViolation
from rulesgate.utils.numbering import DEFAULT_PREFIX, generate_confirmation_code

logger = logging.getLogger("rulesgate.submission")

MAX_NAME_LENGTH = 100
DEFAULT_MAX_ATTEMPTS = 5


# ── Input rules ────────────────────────────────────────────────


def capitalize_words(value: str) -> str:
    """'  mary  ann ' -> 'Mary Ann'.  Only the first letter of a word is upper."""
    return " ".join(word[:1].upper() + word[1:].lower() for word in value.split())


def normalize(raw_first: str, raw_last: str) -> tuple[str, str]:
    return capitalize_words(raw_first), capitalize_words(raw_last)


def _check_name(errors: list[FieldError], field: str, label: str, value: str) -> None:
    value = value.strip()
    if not value:
        errors.append(FieldError(field=field, message=f"{label} is required"))
    elif len(value) > MAX_NAME_LENGTH:
        errors.append(FieldError(field=field, message=f"{label} is too long"))


def validate(data: AgreementInput) -> list[FieldError]:
    """Return every problem with the input; an empty list means valid."""
    errors: list[FieldError] = []
    _check_name(errors, "first_name", "First name", data.first_name)
    _check_name(errors, "last_name", "Last name", data.last_name)
    if not data.agreed:
        errors.append(FieldError(field="agreed", message="You must agree to the rules"))
    return errors


# ── Insert attempts ────────────────────────────────────────────


class InsertOutcome(enum.Enum):
    OK = "ok"
    RETRY = "retry"
    ERROR = "error"


@dataclass
class AttemptResult:
    outcome: InsertOutcome
    record: AgreementRecord | None = None
    error: str | None = None


class SubmissionCoordinator:
    """Stores agreements through whichever AgreementStore was selected at startup.

    One coordinator serves every form; the in-flight guard is keyed by the
    form's session id.
    """

    def __init__(
        self,
        store: AgreementStore,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        code_factory: Callable[[], str] | None = None,
        code_prefix: str = DEFAULT_PREFIX,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.max_attempts = max_attempts
        self._code_factory = code_factory or (lambda: generate_confirmation_code(code_prefix))
        self._in_flight: set[str] = set()

    def is_in_flight(self, session_id: str) -> bool:
        return session_id in self._in_flight

    async def submit(
        self,
        data: AgreementInput,
        gate: ProgressGate,
        *,
        ip_hash: str | None = None,
        user_agent: str | None = None,
    ) -> AgreementRecord:
        if not gate.unlocked:
            raise GateViolationError()
        if gate.state.signed:
            raise AlreadySignedError()
        # Checked and claimed with no await in between
        if gate.session_id in self._in_flight:
            raise SubmissionInFlightError()

        first_name, last_name = normalize(data.first_name, data.last_name)
        errors = validate(AgreementInput(
            first_name=first_name, last_name=last_name, agreed=data.agreed,
        ))
        if errors:
            raise AgreementValidationError(errors)

        self._in_flight.add(gate.session_id)
        try:
            record = await self._store_with_retry(
                first_name, last_name, ip_hash=ip_hash, user_agent=user_agent,
            )
            try:
                await gate.mark_final_step()
            except Exception:
                logger.exception(
                    "Agreement %s stored but session %s could not be marked signed",
                    record.confirmation_code, gate.session_id,
                )
        finally:
            self._in_flight.discard(gate.session_id)

        logger.info(
            "Agreement %s stored for %s %s (%s)",
            record.confirmation_code, record.first_name, record.last_name, self.store.name,
        )
        return record

    async def _attempt(self, record: AgreementRecord) -> AttemptResult:
        try:
            stored = await self.store.insert(record)
        except UniqueViolation:
            return AttemptResult(InsertOutcome.RETRY)
        except StoreError as exc:
            return AttemptResult(InsertOutcome.ERROR, error=str(exc))
        return AttemptResult(InsertOutcome.OK, record=stored)

    async def _store_with_retry(
        self,
        first_name: str,
        last_name: str,
        ip_hash: str | None,
        user_agent: str | None,
    ) -> AgreementRecord:
        for attempt in range(1, self.max_attempts + 1):
            record = AgreementRecord(
                first_name=first_name,
                last_name=last_name,
                confirmation_code=self._code_factory(),
                agreed_at=datetime.now(timezone.utc),
                ip_hash=ip_hash,
                user_agent=user_agent,
            )
            result = await self._attempt(record)

            if result.outcome is InsertOutcome.OK:
                return result.record
            if result.outcome is InsertOutcome.ERROR:
                logger.error("Agreement insert failed on attempt %d: %s", attempt, result.error)
                raise SubmissionError(
                    SubmissionErrorKind.BACKEND_ERROR,
                    message=result.error or None,
                    attempts=attempt,
                )
            logger.warning(
                "Confirmation code collision on %s (attempt %d/%d)",
                record.confirmation_code, attempt, self.max_attempts,
            )

        logger.error(
            "Confirmation code retries exhausted after %d attempts", self.max_attempts,
        )
        raise SubmissionError(
            SubmissionErrorKind.EXHAUSTED_RETRIES,
            attempts=self.max_attempts,
        )
