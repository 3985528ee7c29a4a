from __future__ import annotations

import json

from pydantic import BaseModel, ConfigDict, Field


class SecretRecord(BaseModel):
    """
    Encrypted secret as handed over by the browser.

    Fields
    - public_key: sender's ephemeral public key (wire name "pubkey").
    - nonce: encryption nonce (wire name "nonce").
    - ciphertext: the encrypted secret (wire name "secret").

    Notes
    - All three values are opaque to the server; only presence is checked.
    - The stored form is compact JSON using the wire names, so the stored
      bytes and the HTTP response body share one schema.
    """

    model_config = ConfigDict(frozen=True)

    public_key: str = Field(alias="pubkey", min_length=1)
    nonce: str = Field(alias="nonce", min_length=1)
    ciphertext: str = Field(alias="secret", min_length=1)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_wire(), separators=(",", ":"), sort_keys=True).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "SecretRecord":
        return cls.model_validate(json.loads(data.decode("utf-8")))
