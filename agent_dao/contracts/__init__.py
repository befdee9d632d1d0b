"""
DAO Contracts
=============
Clarity source generation and on-chain deployment.
"""

from .deployer import (
    ContractDeployer,
    Confirmation,
    ConfirmationOutcome,
    RetryPolicy,
)
from .templates import (
    generate_token_contract,
    generate_treasury_contract,
    generate_governance_contract,
)

__all__ = [
    "ContractDeployer",
    "Confirmation",
    "ConfirmationOutcome",
    "RetryPolicy",
    "generate_token_contract",
    "generate_treasury_contract",
    "generate_governance_contract",
]
