"""
Wallet Manager
Signing credential supplied by the caller for deployment transactions
"""

import os
from typing import Dict, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import ValidationError as MnemonicValidationError
from loguru import logger

from .exceptions import ConfigError


class SigningCredential:
    """
    Public identity plus signing capability for one account

    Key material stays inside the wrapped eth-account object; it is never
    logged, persisted, or exposed through repr().
    """

    def __init__(self, account: LocalAccount):
        """
        Initialize signing credential

        Args:
            account: eth-account LocalAccount holding the private key
        """
        self._account = account

    @classmethod
    def from_key(cls, private_key: str) -> "SigningCredential":
        """Build a credential from a hex private key"""
        try:
            return cls(Account.from_key(private_key))
        except (ValueError, TypeError) as e:
            # The key itself must not end up in the message
            raise ConfigError(f"Invalid private key: {type(e).__name__}") from None

    @classmethod
    def from_mnemonic(
        cls,
        mnemonic: str,
        account_path: str = "m/44'/60'/0'/0/0"
    ) -> "SigningCredential":
        """Build a credential from a BIP-39 mnemonic phrase"""
        Account.enable_unaudited_hdwallet_features()
        try:
            return cls(Account.from_mnemonic(mnemonic, account_path=account_path))
        except (MnemonicValidationError, ValueError, TypeError) as e:
            raise ConfigError(f"Invalid mnemonic: {type(e).__name__}") from None

    @property
    def address(self) -> str:
        """Checksummed account address (the public identity)"""
        return self._account.address

    def sign_transaction(self, transaction: Dict):
        """
        Sign a transaction dict locally

        Args:
            transaction: Transaction fields accepted by eth-account

        Returns:
            eth-account SignedTransaction
        """
        return self._account.sign_transaction(transaction)

    def __repr__(self) -> str:
        return f"SigningCredential(address={self.address})"


def load_credential(env_var: str = 'DEPLOYER_PRIVATE_KEY') -> SigningCredential:
    """
    Load the deployer credential from the environment

    DEPLOYER_MNEMONIC is used when the private key variable is unset.

    Args:
        env_var: Environment variable holding a hex private key

    Returns:
        SigningCredential
    """
    private_key: Optional[str] = os.getenv(env_var)
    if private_key:
        credential = SigningCredential.from_key(private_key)
    else:
        mnemonic = os.getenv('DEPLOYER_MNEMONIC')
        if not mnemonic:
            raise ConfigError(f"{env_var} or DEPLOYER_MNEMONIC must be set in .env")
        credential = SigningCredential.from_mnemonic(mnemonic)

    logger.info(f"Deployer account: {credential.address}")
    return credential
