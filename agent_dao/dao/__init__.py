"""
Agent DAO Factory
=================
Creates DAOs for AI agents from Moltbook discussions.

Flow:
1. Agent posts #build-proposal on Moltbook
2. Participants reply with Stacks addresses
3. Whitelist collected into a proposal
4. When threshold met, DAO contracts deployed
5. Tokens distributed to participants
"""

from .factory import DAOFactory, create_factory_from_env, generate_contracts
from .registry import ProposalRegistry, is_valid_stacks_address
from .types import (
    DAOConfig,
    DAOProposal,
    DAOStatus,
    DeploymentPlan,
    DeploymentResult,
    GovernancePhase,
    Participant,
    TokenAllocation,
    build_config,
)

__all__ = [
    "DAOFactory",
    "create_factory_from_env",
    "generate_contracts",
    "ProposalRegistry",
    "is_valid_stacks_address",
    "DAOConfig",
    "DAOProposal",
    "DAOStatus",
    "DeploymentPlan",
    "DeploymentResult",
    "GovernancePhase",
    "Participant",
    "TokenAllocation",
    "build_config",
]
