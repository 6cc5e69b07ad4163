"""Transaction signing interfaces.

- TransactionSigner: abstract signer handed in by the calling layer
- LocalAccountSigner: eth_account-backed signer for scripts and tests
"""

from omniroute.signing.base import SigningError, TransactionSigner
from omniroute.signing.local import LocalAccountSigner

__all__ = [
    "TransactionSigner",
    "SigningError",
    "LocalAccountSigner",
]
