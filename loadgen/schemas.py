# loadgen/schemas.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.types import constr

from loadgen.core.errors import ResponseDecodeError

CardNumber = constr(min_length=16, max_length=16, pattern=r"^[0-9]{16}$")
CardHolderName = constr(pattern=r"^[A-Z]{5} [A-Z]{10}$")
MerchantReference = constr(pattern=r"^[0-9]{5}-[A-Z]{5}$")


class TransactionRequest(BaseModel):
    """
    One synthetic card transaction. Built once per dispatch, serialized, discarded.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    amount: int = Field(ge=2, le=999)
    currency: str = "USD"
    card_number: CardNumber
    card_expiration_month: int = Field(ge=1, le=12)
    card_expiration_year: int
    card_holder_name: CardHolderName
    merchant_code: str = "WELSHGOODS"
    merchant_reference_code: MerchantReference

    def to_payload(self) -> Dict[str, str]:
        # gateway expects every value as a JSON string
        return {
            "amount": str(self.amount),
            "currency": self.currency,
            "cardNumber": self.card_number,
            "cardExpirationMonth": str(self.card_expiration_month),
            "cardExpirationYear": str(self.card_expiration_year),
            "cardHolderName": self.card_holder_name,
            "merchantCode": self.merchant_code,
            "merchantReferenceCode": self.merchant_reference_code,
        }


class GatewayTransactionIn(BaseModel):
    """Wire body as the gateway receives it (camelCase, string values)."""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    amount: str = Field(pattern=r"^[0-9]+$")
    currency: str = Field(min_length=3, max_length=3)
    cardNumber: str = Field(pattern=r"^[0-9]{12,19}$")
    cardExpirationMonth: str = Field(pattern=r"^[0-9]{1,2}$")
    cardExpirationYear: str = Field(pattern=r"^[0-9]{4}$")
    cardHolderName: str = Field(min_length=1, max_length=64)
    merchantCode: str = Field(min_length=1, max_length=32)
    merchantReferenceCode: str = Field(min_length=1, max_length=32)

    @field_validator("cardExpirationMonth")
    @classmethod
    def validate_month(cls, v: str) -> str:
        if not 1 <= int(v) <= 12:
            raise ValueError("cardExpirationMonth must be between 1 and 12")
        return v


class GatewayTransaction(BaseModel):
    """
    Gateway response record. Only `status` is required; everything else the
    gateway echoes back is ignored.
    """
    model_config = ConfigDict(extra="ignore")

    status: str
    id: Optional[str] = None
    merchantReferenceCode: Optional[str] = None


class TransactionStatus(str, Enum):
    APPROVED = "APP"
    DECLINED = "DEC"
    ERROR = "ERR"
    UNRECOGNIZED = "UNRECOGNIZED"

    @classmethod
    def from_tag(cls, tag: Any) -> "TransactionStatus":
        for s in (cls.APPROVED, cls.DECLINED, cls.ERROR):
            if tag == s.value:
                return s
        return cls.UNRECOGNIZED


@dataclass(frozen=True)
class TransactionResult:
    http_status: int
    status: TransactionStatus

    @property
    def is_success(self) -> bool:
        return self.http_status == 200


def decode_gateway_response(http_status: int, body: str) -> TransactionResult:
    """
    Raises ResponseDecodeError when the body is not JSON or has no usable
    `status`. An unknown status value is not an error.
    """
    try:
        record = GatewayTransaction.model_validate_json(body or "")
    except ValidationError as e:
        raise ResponseDecodeError(f"Error parsing response into a transaction record: {e.errors()[0]['msg']}", body=body) from e
    return TransactionResult(http_status=http_status, status=TransactionStatus.from_tag(record.status))
