"""
Margined Deploy - Wallet

Signing identity for Cosmos SDK chains (secp256k1, SIGN_MODE_DIRECT).

Key derivation is out of scope: the wallet is built from a raw private key
plus the bech32 address the operator already knows for it.
"""

import hashlib

from eth_account import Account
from eth_keys import keys


class Wallet:
    """
    Account able to sign transactions.

    Usage:
        wallet = Wallet("orai1...", "0x4f3e...")
        signature = wallet.sign(sign_doc_bytes)
    """

    def __init__(self, address: str, private_key: str, name: str = ""):
        """
        Initialize wallet.

        Args:
            address: Bech32 account address
            private_key: 32-byte secp256k1 key as hex (0x prefix optional)
            name: Human label used in logs and scenarios
        """
        if not address:
            raise ValueError("Wallet address is required")
        account = Account.from_key(private_key)
        self._key = keys.PrivateKey(bytes(account.key))
        self.address = address
        self.name = name or address

    @property
    def public_key(self) -> bytes:
        """Compressed 33-byte public key."""
        return self._key.public_key.to_compressed_bytes()

    def sign(self, sign_doc: bytes) -> bytes:
        """
        Sign serialized sign doc bytes.

        Returns:
            64-byte r||s signature (low-s normalized) over SHA256(sign_doc)
        """
        digest = hashlib.sha256(sign_doc).digest()
        signature = self._key.sign_msg_hash(digest)
        return signature.r.to_bytes(32, "big") + signature.s.to_bytes(32, "big")

    def masked_key(self) -> str:
        """Key hint safe to log (never log the full key)."""
        raw = self._key.to_hex()
        return raw[:6] + "..." + raw[-4:]

    def __repr__(self) -> str:
        return f"Wallet(name={self.name!r}, address={self.address!r})"
