# loadgen/routers/transactions.py
from __future__ import annotations

import uuid
from datetime import date
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from loadgen.core.config import StubGatewaySettings, get_stub_settings
from loadgen.schemas import GatewayTransactionIn, TransactionStatus
from loadgen.services.payload_generator import is_luhn_valid

router = APIRouter(tags=["transactions"])


def _is_expired(month: int, year: int, today: date) -> bool:
    return (year, month) < (today.year, today.month)


def classify(txn: GatewayTransactionIn, settings: StubGatewaySettings, today: date) -> tuple[TransactionStatus, List[str]]:
    """
    ERR for transactions the gateway cannot process at all, DEC for ones it
    refuses, APP otherwise. Returns the status plus reason codes.
    """
    reasons: List[str] = []
    if not is_luhn_valid(txn.cardNumber):
        reasons.append("card_number_invalid")
    if txn.currency.upper() not in settings.accepted_currency_list():
        reasons.append("currency_not_accepted")
    if _is_expired(int(txn.cardExpirationMonth), int(txn.cardExpirationYear), today):
        reasons.append("card_expired")
    if reasons:
        return TransactionStatus.ERROR, reasons

    if int(txn.amount) > settings.decline_over:
        return TransactionStatus.DECLINED, ["amount_over_limit"]
    return TransactionStatus.APPROVED, []


@router.post("/transactions")
def create_transaction(
    txn: GatewayTransactionIn,
    settings: StubGatewaySettings = Depends(get_stub_settings),
) -> Dict[str, Any]:
    status, reasons = classify(txn, settings, date.today())
    return {
        "id": str(uuid.uuid4()),
        "status": status.value,
        "reason_codes": reasons,
        "amount": txn.amount,
        "currency": txn.currency,
        "merchantCode": txn.merchantCode,
        "merchantReferenceCode": txn.merchantReferenceCode,
    }
