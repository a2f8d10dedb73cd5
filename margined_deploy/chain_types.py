"""
Margined Deploy - Data Types

Chain endpoints, coins, accounts, transaction results and deployed contracts.
"""

import base64
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Coin:
    """Native asset amount (denom + integer amount in base units)."""
    denom: str
    amount: int

    def to_dict(self) -> dict:
        return {"denom": self.denom, "amount": str(self.amount)}

    @classmethod
    def from_dict(cls, data: dict) -> "Coin":
        return cls(denom=data["denom"], amount=int(data["amount"]))

    def __str__(self) -> str:
        return f"{self.amount}{self.denom}"


@dataclass(frozen=True)
class ChainEndpoint:
    """
    Immutable descriptor of one target network.

    Structure:
      - chain_id: Chain identifier used in the sign doc (e.g., "Oraichain")
      - lcd_url: REST gateway base URL (e.g., "http://localhost:1317")
      - prefix: Bech32 address prefix (e.g., "orai")
    """
    chain_id: str
    lcd_url: str
    prefix: str

    def owns_address(self, address: str) -> bool:
        """Check the address carries this network's bech32 prefix."""
        return address.startswith(self.prefix + "1")


@dataclass(frozen=True)
class Account:
    """On-chain account state needed to sign the next transaction."""
    account_number: int
    sequence: int


def _is_base64(text: str) -> bool:
    if not text or len(text) % 4:
        return False
    try:
        base64.b64decode(text, validate=True).decode()
    except (ValueError, UnicodeDecodeError):
        return False
    return True


def _decode_attr(value: Optional[str], encoded: bool) -> str:
    if value is None:
        return ""
    if not encoded:
        return value
    try:
        return base64.b64decode(value).decode()
    except (ValueError, UnicodeDecodeError):
        return value


def _parse_events(events: List[dict]) -> Dict[str, Dict[str, List[str]]]:
    """Group raw event attributes by event type and key."""
    by_type: Dict[str, Dict[str, List[str]]] = {}
    for event in events or []:
        attributes = event.get("attributes", [])
        # tendermint 0.34 base64 encodes top-level event attributes
        encoded = bool(attributes) and all(_is_base64(a.get("key", "")) for a in attributes)
        bucket = by_type.setdefault(event.get("type", ""), {})
        for attr in attributes:
            key = _decode_attr(attr.get("key"), encoded)
            bucket.setdefault(key, []).append(_decode_attr(attr.get("value"), encoded))
    return by_type


@dataclass
class TransactionResult:
    """
    Outcome of one broadcast transaction.

    Produced by the chain client per submitted transaction and consumed
    immediately by the caller; never persisted.
    """
    success: bool
    txhash: str
    code: int = 0
    codespace: str = ""
    raw_log: str = ""
    gas_wanted: int = 0
    gas_used: int = 0
    height: int = 0
    timestamp: str = ""
    events: Dict[str, Dict[str, List[str]]] = field(default_factory=dict)

    @classmethod
    def from_tx_response(cls, data: dict) -> "TransactionResult":
        """Create result from an LCD `tx_response` object."""
        code = int(data.get("code") or 0)
        events: List[dict] = []
        for entry in data.get("logs") or []:
            events.extend(entry.get("events", []))
        if not events:
            events = data.get("events") or []
        return cls(
            success=code == 0,
            txhash=data.get("txhash", ""),
            code=code,
            codespace=data.get("codespace") or "",
            raw_log=data.get("raw_log") or "",
            gas_wanted=int(data.get("gas_wanted") or 0),
            gas_used=int(data.get("gas_used") or 0),
            height=int(data.get("height") or 0),
            timestamp=data.get("timestamp") or "",
            events=_parse_events(events),
        )

    def attribute(self, event_type: str, key: str) -> Optional[str]:
        """Return the last value of an event attribute, or None."""
        values = self.events.get(event_type, {}).get(key)
        if not values:
            return None
        return values[-1]


@dataclass(frozen=True)
class DeployedContract:
    """
    A contract produced by one deployment run.

    The address never changes after instantiation; configuration changes
    happen on-chain through execute calls, not by mutating this record.
    """
    label: str
    code_id: int
    address: str

    def to_dict(self) -> dict:
        return {"label": self.label, "code_id": self.code_id, "address": self.address}
