"""Local signing backend.

Wraps an eth_account LocalAccount. Suitable for:
- Development and testing
- Operator scripts that already hold a key in process memory

The account is constructed by the caller; this module never reads keys
from the environment or configuration.
"""

import logging

from eth_account.signers.local import LocalAccount

from omniroute.signing.base import SigningError, TransactionSigner

logger = logging.getLogger(__name__)


class LocalAccountSigner(TransactionSigner):
    """Signer backed by an in-memory eth_account account."""

    def __init__(self, account: LocalAccount):
        self._account = account

    async def get_address(self) -> str:
        return self._account.address

    async def sign_transaction(self, tx: dict) -> bytes:
        try:
            signed = self._account.sign_transaction(tx)
        except Exception as e:
            logger.error(f"Local signing failed: {e}")
            raise SigningError(str(e)) from e
        return bytes(signed.raw_transaction)

    def __repr__(self) -> str:
        return f"LocalAccountSigner(address={self._account.address})"
