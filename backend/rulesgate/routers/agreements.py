"""Signing the member auction rules.

Endpoints:
  POST /api/agreements/          → submit the signed agreement
  GET  /api/agreements/template  → the member auction post template
"""

from fastapi import APIRouter, Depends, Request, status

from rulesgate.config import settings
from rulesgate.deps import get_coordinator, get_gate
from rulesgate.middleware.exceptions import GateViolationError
from rulesgate.schemas.agreement import AgreementInput, AgreementOut, AgreementTemplate
from rulesgate.services.progress_gate import ProgressGate
from rulesgate.services.submission import SubmissionCoordinator
from rulesgate.utils.integrity import client_ip, client_signature, hash_origin

router = APIRouter()

AUCTION_TEMPLATE = """***MEMBER AUCTION***

[ITEM DESCRIPTION - include edition size: LE XXX, OE, or LR]
[List any flaws, defects, or imperfections]

Starting Bid: $[AMOUNT]
Shipping: $[AMOUNT] within the U.S.; International $[AMOUNT] (or no international)
Ends: [DATE] @ [TIME] pm PST

*All bids must be in whole dollar increments.
*Payment Types Accepted: [Paypal and/or Venmo]

#disneykingpins #dkpauctions"""


@router.post("/", response_model=AgreementOut, status_code=status.HTTP_201_CREATED)
async def submit_agreement(
    body: AgreementInput,
    request: Request,
    gate: ProgressGate = Depends(get_gate),
    coordinator: SubmissionCoordinator = Depends(get_coordinator),
):
    """Store the agreement and return its confirmation code."""
    # A stale flag-less session that has in fact read everything unlocks here
    if not await gate.try_unlock():
        raise GateViolationError()

    record = await coordinator.submit(
        body,
        gate,
        ip_hash=hash_origin(client_ip(request), settings.ip_hash_salt),
        user_agent=client_signature(request),
    )
    return AgreementOut(
        first_name=record.first_name,
        last_name=record.last_name,
        confirmation_code=record.confirmation_code,
        agreed_at=record.agreed_at,
    )


@router.get("/template", response_model=AgreementTemplate)
async def get_template():
    return AgreementTemplate(template=AUCTION_TEMPLATE)
