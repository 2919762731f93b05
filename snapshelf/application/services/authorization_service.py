"""Authorization service - negotiates deletion of shared photos.

A delete attempt runs through these states:

    ATTEMPTING -> DELETED
    ATTEMPTING -> DENIED -> AWAITING_CONSENT -> DELETED | ABANDONED
    ATTEMPTING -> DENIED -> ABANDONED            (no consent token derivable)

The consent round-trip is explicit: ``request_delete`` leaves the attempt
in AWAITING_CONSENT with a token the UI presents to the user, and
``resolve_consent`` completes it with the user's answer.
"""
import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Union

from ...infrastructure.storage import (
    AuthorizationReason,
    AuthorizationRequest,
    CapabilityTier,
    Deleted,
    ErrorKind,
    NeedsAuthorization,
    Result,
    SharedStore,
)
from ...infrastructure.storage.base import ConsentToken

logger = logging.getLogger(__name__)


class DeleteState(Enum):
    ATTEMPTING = "attempting"
    DELETED = "deleted"
    DENIED = "denied"
    AWAITING_CONSENT = "awaiting_consent"
    ABANDONED = "abandoned"


class ConsentOutcome(Enum):
    GRANTED = "granted"
    DENIED = "denied"


@dataclass
class DeleteAttempt:
    """One delete attempt on a shared record."""
    locator: str
    state: DeleteState = DeleteState.ATTEMPTING
    request: Optional[AuthorizationRequest] = None

    @property
    def consent_token(self) -> Optional[ConsentToken]:
        return self.request.consent_token if self.request else None


class AuthorizationNegotiator:
    """Drives delete attempts through the platform's authorization protocol.

    The capability tier is fixed at construction:
    - LEGACY: a denial is final, the attempt is abandoned
    - SCOPED: the denial carries a consent token; on consent the delete
      is re-issued once
    - MODERN: a delete request is filed with the platform; on consent the
      platform deletes the record itself

    At most one attempt per locator may await consent at a time.
    """

    def __init__(self, shared_store: SharedStore, tier: Union[str, CapabilityTier]):
        self.shared_store = shared_store
        self.tier = CapabilityTier.parse(tier)
        self._pending_by_locator: Dict[str, DeleteAttempt] = {}
        self._pending_by_token: Dict[ConsentToken, DeleteAttempt] = {}

    def pending(self, locator: str) -> Optional[DeleteAttempt]:
        """The unresolved attempt for locator, if any."""
        return self._pending_by_locator.get(locator)

    async def request_delete(self, locator: str) -> Result[DeleteAttempt]:
        """Try to delete a shared record.

        Returns:
            Result holding the attempt in DELETED, AWAITING_CONSENT or
            ABANDONED state; ALREADY_PENDING if another attempt on the
            locator is in flight or awaiting consent; store failures
            (NOT_FOUND, IO_FAILED) as-is
        """
        if locator in self._pending_by_locator:
            return Result.failure(
                ErrorKind.ALREADY_PENDING, f"Delete of {locator} is already in progress"
            )

        # Reserved before the first await; released unless consent is awaited
        attempt = DeleteAttempt(locator)
        self._pending_by_locator[locator] = attempt
        try:
            return await self._attempt_delete(attempt)
        finally:
            if attempt.state is not DeleteState.AWAITING_CONSENT:
                del self._pending_by_locator[locator]

    async def _attempt_delete(self, attempt: DeleteAttempt) -> Result[DeleteAttempt]:
        outcome = await self.shared_store.delete(attempt.locator)
        if not outcome.ok:
            return Result.failure(outcome.error, outcome.message)

        if isinstance(outcome.value, Deleted):
            attempt.state = DeleteState.DELETED
            return Result.success(attempt)

        attempt.state = DeleteState.DENIED
        request = await self._derive_request(outcome.value)
        attempt.request = request
        if request is None or request.consent_token is None:
            logger.info("Delete of %s denied with no consent path", attempt.locator)
            attempt.state = DeleteState.ABANDONED
            return Result.success(attempt)

        attempt.state = DeleteState.AWAITING_CONSENT
        self._pending_by_token[request.consent_token] = attempt
        return Result.success(attempt)

    async def _derive_request(self, denied: NeedsAuthorization) -> Optional[AuthorizationRequest]:
        """Attach a consent token to the denial, as the tier allows."""
        request = denied.request

        if self.tier is CapabilityTier.LEGACY:
            return request

        if self.tier is CapabilityTier.SCOPED:
            token = getattr(request.denial, "recovery_token", None)
            return dataclasses.replace(request, consent_token=token)

        created = await self.shared_store.create_delete_request([request.locator])
        if not created.ok:
            logger.warning("Couldn't create delete request for %s: %s", request.locator, created.message)
            return request
        return dataclasses.replace(
            request,
            reason=AuthorizationReason.PLATFORM_REQUIRES_CONSENT,
            consent_token=created.value,
        )

    async def resolve_consent(
        self,
        token: ConsentToken,
        outcome: ConsentOutcome
    ) -> Result[DeleteAttempt]:
        """Complete an attempt after the user answered the consent flow.

        Returns:
            Result holding the attempt in DELETED or ABANDONED state;
            NOT_FOUND for an unknown token; AUTHORIZATION_DENIED if the
            re-issued delete was still refused
        """
        attempt = self._pending_by_token.pop(token, None)
        if attempt is None:
            return Result.failure(ErrorKind.NOT_FOUND, "No delete is awaiting this consent token")
        self._pending_by_locator.pop(attempt.locator, None)

        if outcome is not ConsentOutcome.GRANTED:
            await self._withdraw(token)
            attempt.state = DeleteState.ABANDONED
            return Result.success(attempt)

        if self.tier is CapabilityTier.MODERN:
            # The platform performed the deletion when the user consented
            attempt.state = DeleteState.DELETED
            return Result.success(attempt)

        retried = await self.shared_store.delete(attempt.locator)
        if retried.ok and isinstance(retried.value, Deleted):
            attempt.state = DeleteState.DELETED
            return Result.success(attempt)

        # Neither the original token nor one issued by the refused re-issue will be approved
        await self._withdraw(token)
        if retried.ok:
            fresh = getattr(retried.value.request.denial, "recovery_token", None)
            if fresh:
                await self._withdraw(fresh)

        attempt.state = DeleteState.ABANDONED
        logger.warning("Re-issued delete of %s did not succeed", attempt.locator)
        return Result.failure(
            ErrorKind.AUTHORIZATION_DENIED,
            retried.message or f"Delete of {attempt.locator} still denied after consent",
        )

    async def _withdraw(self, token: ConsentToken) -> None:
        withdrawn = await self.shared_store.reject_consent(token)
        if not withdrawn.ok:
            logger.warning("Consent token left behind: %s", withdrawn.message)
