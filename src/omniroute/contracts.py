"""Request contracts for callers driving the engine from untrusted input.

Requests carry addresses only. Signing always happens through a
TransactionSigner supplied by the caller; any payload that tries to pass
private keys, seed phrases or keystores is rejected outright.
"""

import re
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from omniroute.chains import find_token_by_address, get_token
from omniroute.crosschain.composer import CrossChainSwapParams
from omniroute.errors import InvalidTradeParams, KeyMaterialRejected
from omniroute.routing.base import DEFAULT_SLIPPAGE_BPS, Token, TradeParams

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")

# Compared after lowercasing and dropping "_" / "-"
KEY_MATERIAL_FIELDS = {
    "privatekey",
    "secretkey",
    "mnemonic",
    "seed",
    "seedphrase",
    "keystore",
    "keystorejson",
}


def _normalize_key(key: str) -> str:
    return key.lower().replace("_", "").replace("-", "")


def reject_key_material(payload: Any, path: str = "") -> None:
    """Raise KeyMaterialRejected if any nested field name looks like a secret."""
    if isinstance(payload, dict):
        for key, value in payload.items():
            location = f"{path}.{key}" if path else str(key)
            if _normalize_key(str(key)) in KEY_MATERIAL_FIELDS:
                raise KeyMaterialRejected(
                    "Private keys and seed phrases must never be sent to the routing engine. "
                    "Only provide addresses; signing happens through the caller's signer.",
                    {"field": location},
                )
            reject_key_material(value, location)
    elif isinstance(payload, (list, tuple)):
        for i, item in enumerate(payload):
            reject_key_material(item, f"{path}[{i}]")


def validate_address(v: str) -> str:
    """Validate an EVM address, refusing anything shaped like a private key."""
    if len(v) in (64, 66):
        raise KeyMaterialRejected(
            "Private keys must never be sent to the routing engine. Only provide the public address."
        )
    if not ADDRESS_PATTERN.match(v):
        raise ValueError("Invalid Ethereum address format")
    return v


class _Request(BaseModel):
    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def _no_key_material(cls, data: Any) -> Any:
        reject_key_material(data)
        return data


class TokenRef(_Request):
    """A token by symbol (known tokens) or by address (+ decimals if unknown)."""

    chain_id: int = Field(..., description="EVM chain ID")
    symbol: Optional[str] = Field(None, description="Token symbol, e.g. USDC")
    address: Optional[str] = Field(None, description="Token contract address")
    decimals: Optional[int] = Field(None, ge=0, le=36, description="Required for unlisted tokens")

    @field_validator("address")
    @classmethod
    def check_address(cls, v: Optional[str]) -> Optional[str]:
        return validate_address(v) if v is not None else v

    def to_token(self) -> Token:
        """Resolve to a Token.

        Raises:
            InvalidTradeParams: unknown symbol, or unlisted address without decimals
        """
        if self.address:
            known = find_token_by_address(self.chain_id, self.address)
            if known:
                return known
            if self.decimals is None:
                raise InvalidTradeParams(f"Unlisted token {self.address} needs decimals")
            symbol = self.symbol or self.address[:8]
            return Token(
                address=self.address,
                symbol=symbol.upper(),
                name=symbol,
                decimals=self.decimals,
                chain_id=self.chain_id,
            )
        if self.symbol:
            token = get_token(self.chain_id, self.symbol)
            if token is None:
                raise InvalidTradeParams(f"Unknown token {self.symbol} on chain {self.chain_id}")
            return token
        raise InvalidTradeParams("Token needs a symbol or an address")


class QuoteRequest(_Request):
    """Request for a same-chain quote."""

    token_in: TokenRef
    token_out: TokenRef
    amount: Decimal = Field(..., gt=0, description="Amount of token_in to swap")
    slippage_bps: Optional[int] = Field(
        default=None, ge=0, le=10000, description="Slippage tolerance (50 = 0.5%); engine default when unset"
    )
    recipient: Optional[str] = Field(None, description="Output recipient (defaults to signer)")

    @field_validator("recipient")
    @classmethod
    def check_recipient(cls, v: Optional[str]) -> Optional[str]:
        return validate_address(v) if v is not None else v

    def to_params(self, default_slippage_bps: int = DEFAULT_SLIPPAGE_BPS) -> TradeParams:
        return TradeParams(
            token_in=self.token_in.to_token(),
            token_out=self.token_out.to_token(),
            amount_in=self.amount,
            slippage_bps=self.slippage_bps if self.slippage_bps is not None else default_slippage_bps,
            recipient=self.recipient,
        )


class CrossChainQuoteRequest(_Request):
    """Request for a cross-chain quote; the chains come from the token refs."""

    token_in: TokenRef
    token_out: TokenRef
    amount: Decimal = Field(..., gt=0, description="Amount of token_in to swap")
    recipient: str = Field(..., description="Recipient on the destination chain")
    slippage_bps: Optional[int] = Field(default=None, ge=0, le=10000)
    prioritize_speed: bool = Field(default=False, description="Pick the fastest bridge")

    @field_validator("recipient")
    @classmethod
    def check_recipient(cls, v: str) -> str:
        return validate_address(v)

    def to_params(self, default_slippage_bps: int = DEFAULT_SLIPPAGE_BPS) -> CrossChainSwapParams:
        return CrossChainSwapParams(
            from_chain=self.token_in.chain_id,
            to_chain=self.token_out.chain_id,
            token_in=self.token_in.to_token(),
            token_out=self.token_out.to_token(),
            amount_in=self.amount,
            recipient=self.recipient,
            slippage_bps=self.slippage_bps if self.slippage_bps is not None else default_slippage_bps,
            prioritize_speed=self.prioritize_speed,
        )


class ExecuteRequest(_Request):
    """Execute either a same-chain trade or a cross-chain swap for a signer address."""

    signer_address: str = Field(..., description="Address the caller's signer controls")
    trade: Optional[QuoteRequest] = None
    cross_chain: Optional[CrossChainQuoteRequest] = None

    @field_validator("signer_address")
    @classmethod
    def check_signer(cls, v: str) -> str:
        return validate_address(v)

    @model_validator(mode="after")
    def exactly_one(self) -> "ExecuteRequest":
        if (self.trade is None) == (self.cross_chain is None):
            raise ValueError("Provide exactly one of 'trade' or 'cross_chain'")
        return self

    @property
    def is_cross_chain(self) -> bool:
        return self.cross_chain is not None
