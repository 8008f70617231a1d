"""ICP principal identifiers and ICRC accounts."""
from __future__ import annotations

import base64
import binascii
import zlib
from dataclasses import dataclass
from typing import Optional

from .constants import PRINCIPAL_MAX_LENGTH, SUBACCOUNT_LENGTH
from .errors import BridgeError

_ANONYMOUS_ID = b"\x04"


@dataclass(frozen=True)
class Principal:
    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) > PRINCIPAL_MAX_LENGTH:
            raise BridgeError(f"Principal is longer than {PRINCIPAL_MAX_LENGTH} bytes.")

    @classmethod
    def from_text(cls, text: str) -> "Principal":
        """Parse the dashed base32 textual form, verifying its CRC32 prefix."""
        cleaned = text.strip().replace("-", "").upper()
        if not cleaned:
            raise BridgeError("Principal text is empty.")
        padding = "=" * (-len(cleaned) % 8)
        try:
            decoded = base64.b32decode(cleaned + padding)
        except (binascii.Error, ValueError) as exc:
            raise BridgeError(f"Invalid principal text: {text!r}") from exc
        if len(decoded) < 4:
            raise BridgeError(f"Invalid principal text: {text!r}")
        checksum, raw = decoded[:4], decoded[4:]
        if zlib.crc32(raw).to_bytes(4, "big") != checksum:
            raise BridgeError(f"Principal checksum mismatch: {text!r}")
        principal = cls(raw)
        if principal.to_text() != text.strip().lower():
            raise BridgeError(f"Principal text is not in canonical form: {text!r}")
        return principal

    @classmethod
    def anonymous(cls) -> "Principal":
        return cls(_ANONYMOUS_ID)

    @classmethod
    def management_canister(cls) -> "Principal":
        return cls(b"")

    def to_text(self) -> str:
        checksum = zlib.crc32(self.raw).to_bytes(4, "big")
        encoded = base64.b32encode(checksum + self.raw).decode("ascii").lower().rstrip("=")
        return "-".join(encoded[i : i + 5] for i in range(0, len(encoded), 5))

    def __str__(self) -> str:
        return self.to_text()


@dataclass(frozen=True)
class IcrcAccount:
    owner: Principal
    subaccount: Optional[bytes] = None

    def __post_init__(self) -> None:
        if self.subaccount is not None and len(self.subaccount) != SUBACCOUNT_LENGTH:
            raise BridgeError(f"Subaccount must be exactly {SUBACCOUNT_LENGTH} bytes.")

    def has_default_subaccount(self) -> bool:
        return self.subaccount is None or not any(self.subaccount)
