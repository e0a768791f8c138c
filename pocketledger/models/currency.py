from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator


class CurrencyKind(str, Enum):
    FIAT = "fiat"
    CRYPTO = "crypto"


class CurrencyRecord(BaseModel):
    """Seeded reference currency. Only ``is_default`` changes after seeding."""

    model_config = ConfigDict(from_attributes=True)

    code: str
    symbol: str
    name: str = ""
    kind: CurrencyKind = CurrencyKind.FIAT
    is_default: bool = False

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("currency code cannot be empty")
        return v

    @property
    def is_crypto(self) -> bool:
        return self.kind is CurrencyKind.CRYPTO
