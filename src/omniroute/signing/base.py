"""Base interface for transaction signing.

Signing flow:
1. Venue or bridge builds an unsigned transaction dict
2. RPC client fills nonce, gas and chain id
3. Signer returns the raw signed transaction (never the private key)
4. RPC client broadcasts it and waits for the receipt

The routing engine never loads keys itself. Callers hand in a signer that is
already bound to an account: a wallet connector, a KMS-backed signer, or
LocalAccountSigner for scripts and tests.
"""

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class TransactionSigner(ABC):
    """Abstract signer for EVM transactions."""

    @abstractmethod
    async def get_address(self) -> str:
        """Checksummed address of the signing account."""
        pass

    @abstractmethod
    async def sign_transaction(self, tx: dict) -> bytes:
        """Sign a fully populated transaction dict.

        Args:
            tx: Transaction fields (to, data, value, nonce, gas, gasPrice, chainId)

        Returns:
            Raw signed transaction bytes ready for eth_sendRawTransaction
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class SigningError(Exception):
    """Exception raised when signing fails."""
    pass
