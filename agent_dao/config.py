"""
Agent DAO Factory Configuration
===============================
Handles environment variables and deployment settings.
"""

import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

from .errors import FatalConfigError

load_dotenv()


# Stacks networks
NETWORKS = {
    "mainnet": {
        "api_url": "https://api.mainnet.hiro.so",
        "explorer_url": "https://explorer.stacks.co",
        "chain_id": 1,
    },
    "testnet": {
        "api_url": "https://api.testnet.hiro.so",
        "explorer_url": "https://explorer.stacks.co",
        "chain_id": 2147483648,
    },
}

# sBTC token contracts, allowed in every DAO treasury
SBTC_CONTRACTS = {
    "mainnet": "SM3VDXK3WZZSA84XXFKAFAF15NNZX32CTSG82JFQ4.sbtc-token",
    "testnet": "ST1F7QA2MDF17S807EPA36TSS8AMEFY4KA9TVGWXT.sbtc-token",
}

# Fees and limits in microSTX
DEFAULT_DEPLOY_FEE = 100_000       # 0.1 STX
DEFAULT_CALL_FEE = 50_000          # 0.05 STX
MIN_DEPLOY_BALANCE = 1_000_000     # 1 STX


@dataclass
class FactoryConfig:
    """Configuration for the DAO factory and contract deployer."""

    # Stacks Network
    network: str  # "mainnet" or "testnet"
    stacks_api_url: str

    # Deployer credentials
    deployer_private_key: Optional[str]
    deployer_address: Optional[str]

    # Recipient of the verifier allocation
    verifier_address: Optional[str]

    # Proposal snapshots (None = in-memory only)
    data_dir: Optional[str] = None

    # Transaction settings
    deploy_fee: int = DEFAULT_DEPLOY_FEE
    call_fee: int = DEFAULT_CALL_FEE
    min_deploy_balance: int = MIN_DEPLOY_BALANCE

    # Confirmation polling and deadlines (seconds)
    confirmation_attempts: int = 60
    confirmation_interval: float = 5.0
    deployment_timeout: float = 1800.0
    request_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "FactoryConfig":
        """Load configuration from environment variables."""
        network = os.getenv("STACKS_NETWORK", "testnet")
        if network not in NETWORKS:
            raise FatalConfigError(f"Unknown STACKS_NETWORK: {network}")

        deployer_address = os.getenv("DEPLOYER_ADDRESS")

        return cls(
            network=network,
            stacks_api_url=os.getenv("STACKS_API_URL", NETWORKS[network]["api_url"]),
            deployer_private_key=os.getenv("DEPLOYER_PRIVATE_KEY"),
            deployer_address=deployer_address,
            verifier_address=os.getenv("VERIFIER_ADDRESS", deployer_address),
            data_dir=os.getenv("DAO_DATA_DIR"),
            deploy_fee=int(os.getenv("DEPLOY_FEE", DEFAULT_DEPLOY_FEE)),
            call_fee=int(os.getenv("CALL_FEE", DEFAULT_CALL_FEE)),
            min_deploy_balance=int(os.getenv("MIN_DEPLOY_BALANCE", MIN_DEPLOY_BALANCE)),
            confirmation_attempts=int(os.getenv("CONFIRMATION_ATTEMPTS", 60)),
            confirmation_interval=float(os.getenv("CONFIRMATION_INTERVAL", 5)),
            deployment_timeout=float(os.getenv("DEPLOYMENT_TIMEOUT", 1800)),
            request_timeout=float(os.getenv("REQUEST_TIMEOUT", 30)),
        )

    def require_credentials(self):
        """Fail fast when the deployer key or address is missing."""
        if not self.deployer_private_key or not self.deployer_address:
            raise FatalConfigError("Missing DEPLOYER_PRIVATE_KEY or DEPLOYER_ADDRESS")
