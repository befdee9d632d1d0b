"""
DAO Types
=========
Data structures for agent DAOs.
"""

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Tuple, Any

from ..errors import InvalidConfigError

BP_DENOMINATOR = 10000  # 10000 bp = 100%


class DAOStatus(Enum):
    """Status of a DAO proposal."""
    GATHERING = "gathering"       # Collecting participants
    THRESHOLD_MET = "threshold_met"  # Ready to deploy
    DEPLOYING = "deploying"       # Contract deployment in progress
    DEPLOYED = "deployed"         # Live on chain
    FAILED = "failed"            # Deployment failed


# Forward-only status moves. DEPLOYED and FAILED are terminal.
ALLOWED_TRANSITIONS = {
    DAOStatus.GATHERING: {DAOStatus.THRESHOLD_MET},
    DAOStatus.THRESHOLD_MET: {DAOStatus.DEPLOYING},
    DAOStatus.DEPLOYING: {DAOStatus.DEPLOYED, DAOStatus.FAILED},
    DAOStatus.DEPLOYED: set(),
    DAOStatus.FAILED: set(),
}


class GovernancePhase(Enum):
    """Governance phase the DAO starts in."""
    FOUNDER_CONTROL = "founder_control"   # Founder makes all decisions
    TRANSITIONING = "transitioning"       # Preparing for decentralization
    DECENTRALIZED = "decentralized"       # Token holder voting


@dataclass(frozen=True)
class DAOConfig:
    """Token, allocation and governance parameters of a DAO."""
    name: str
    symbol: str
    description: str
    total_supply: int = 100_000_000_000_000_000  # 1B with 8 decimals

    # Allocation (must sum to 10000)
    founder_bp: int = 5000        # 50%
    participant_bp: int = 3000    # 30%
    treasury_bp: int = 1500       # 15%
    verifier_bp: int = 500        # 5%

    # Governance
    governance_phase: GovernancePhase = GovernancePhase.FOUNDER_CONTROL
    voting_quorum: int = 15               # percent
    voting_threshold: int = 66            # percent
    proposal_bond: int = 25_000_000_000   # 250 tokens
    core_change_threshold: int = 95       # percent

    # Revenue: 75% to holders, 25% reinvested
    profit_distribution_bp: int = 7500
    reinvestment_bp: int = 2500

    # Whitelist size
    min_participants: int = 10
    max_participants: int = 50

    def validate(self):
        """Raise InvalidConfigError if the configuration is inconsistent."""
        for name in TEXT_FIELDS:
            if not isinstance(getattr(self, name), str):
                raise InvalidConfigError(f"{name} must be a string")
        for name in INT_FIELDS:
            value = getattr(self, name)
            # bool is an int subclass; floats would leak into allocation math
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidConfigError(f"{name} must be an integer, got {value!r}")
        if not isinstance(self.governance_phase, GovernancePhase):
            raise InvalidConfigError(f"Unknown governance phase: {self.governance_phase!r}")

        if not self.name or not self.symbol:
            raise InvalidConfigError("Name and symbol are required")
        if not (self.symbol.isascii() and self.symbol.isalnum()):
            raise InvalidConfigError(f"Symbol must be alphanumeric: {self.symbol}")
        if self.total_supply <= 0:
            raise InvalidConfigError("Total supply must be positive")
        if self.proposal_bond < 0:
            raise InvalidConfigError("Proposal bond must not be negative")

        splits = (self.founder_bp, self.participant_bp, self.treasury_bp, self.verifier_bp)
        if any(bp < 0 for bp in splits) or sum(splits) != BP_DENOMINATOR:
            raise InvalidConfigError(
                f"Allocation basis points must be non-negative and sum to "
                f"{BP_DENOMINATOR}, got {sum(splits)}"
            )
        revenue = (self.profit_distribution_bp, self.reinvestment_bp)
        if any(bp < 0 for bp in revenue) or sum(revenue) != BP_DENOMINATOR:
            raise InvalidConfigError(
                f"Revenue basis points must sum to {BP_DENOMINATOR}, got {sum(revenue)}"
            )
        if self.min_participants < 1:
            raise InvalidConfigError("min_participants must be at least 1")
        if self.min_participants > self.max_participants:
            raise InvalidConfigError(
                f"min_participants ({self.min_participants}) exceeds "
                f"max_participants ({self.max_participants})"
            )
        for pct in (self.voting_quorum, self.voting_threshold, self.core_change_threshold):
            if not 0 <= pct <= 100:
                raise InvalidConfigError(f"Voting percentage out of range: {pct}")

    def to_dict(self) -> dict:
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, GovernancePhase):
                value = value.value
            elif f.name in ("total_supply", "proposal_bond"):
                value = str(value)  # may exceed 2^53
            data[f.name] = value
        return data

    @classmethod
    def from_dict(cls, d: dict) -> "DAOConfig":
        data = dict(d)
        data["total_supply"] = int(data["total_supply"])
        data["proposal_bond"] = int(data["proposal_bond"])
        data["governance_phase"] = GovernancePhase(data["governance_phase"])
        return cls(**data)


CONFIG_FIELDS = {f.name for f in fields(DAOConfig)}
TEXT_FIELDS = ("name", "symbol", "description")
INT_FIELDS = tuple(
    name for name in sorted(CONFIG_FIELDS)
    if name not in TEXT_FIELDS and name != "governance_phase"
)


def build_config(
    name: str,
    symbol: str,
    description: str,
    overrides: Optional[Dict[str, Any]] = None,
) -> DAOConfig:
    """
    Merge overrides over the default configuration.

    Overrides win on conflict. Unknown keys and inconsistent results
    raise InvalidConfigError instead of being silently accepted.
    """
    config = DAOConfig(name=name, symbol=_upper(symbol), description=description)

    if overrides:
        unknown = set(overrides) - CONFIG_FIELDS
        if unknown:
            raise InvalidConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        updates = dict(overrides)
        if "symbol" in updates:
            updates["symbol"] = _upper(updates["symbol"])
        if isinstance(updates.get("governance_phase"), str):
            try:
                updates["governance_phase"] = GovernancePhase(updates["governance_phase"])
            except ValueError as e:
                raise InvalidConfigError(str(e)) from e
        config = replace(config, **updates)

    config.validate()
    return config


def _upper(symbol):
    # Non-strings are left for validate() to reject
    return symbol.upper() if isinstance(symbol, str) else symbol


@dataclass
class Participant:
    """A participant in a DAO whitelist."""
    stacks_address: str
    agent_name: str
    mcp_verified: bool = False
    allocation_bp: int = 0       # Basis points of the participant pool
    joined_at: datetime = field(default_factory=datetime.now)
    claimed: bool = False        # Reserved for claim-based distribution
    moltbook_reply_id: Optional[str] = None  # Reply where they joined


@dataclass(frozen=True)
class TokenAllocation:
    """Token allocation for a recipient."""
    recipient: str               # Stacks address
    amount: int                  # Tokens (with decimals)
    allocation_type: str         # "founder", "participant", "treasury", "verifier"
    allocation_bp: int           # Basis points of their pool


@dataclass
class DeploymentResult:
    """Outcome of one deployment run, including partial progress."""
    success: bool = False
    tx_ids: List[str] = field(default_factory=list)
    addresses: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None
    gas_used: Optional[int] = None   # Total fees paid, in microSTX

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "tx_ids": list(self.tx_ids),
            "addresses": dict(self.addresses),
            "error": self.error,
            "gas_used": self.gas_used,
        }


@dataclass(frozen=True)
class DeploymentPlan:
    """Immutable snapshot of everything the deployer needs."""
    dao_id: int
    config: DAOConfig
    proposer: str
    verifier: str
    participants: Tuple[Tuple[str, int], ...]  # (address, allocation_bp), proposer excluded

    @property
    def eligible_participants(self) -> List[Tuple[str, int]]:
        return [(addr, bp) for addr, bp in self.participants if bp > 0]


@dataclass
class DAOProposal:
    """A proposal to create an agent DAO."""
    dao_id: int
    moltbook_post_id: str
    config: DAOConfig
    proposer: str                # Stacks address
    proposer_name: str           # Agent name
    participants: List[Participant] = field(default_factory=list)
    status: DAOStatus = DAOStatus.GATHERING

    # Contract addresses (set after deployment)
    token_address: Optional[str] = None
    treasury_address: Optional[str] = None
    governance_address: Optional[str] = None

    # Timestamps
    created_at: datetime = field(default_factory=datetime.now)
    threshold_met_at: Optional[datetime] = None
    deployed_at: Optional[datetime] = None

    # Deployment info
    deployment_tx_ids: List[str] = field(default_factory=list)
    deployment_error: Optional[str] = None
    gas_used: Optional[int] = None

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def symbol(self) -> str:
        return self.config.symbol

    @property
    def min_participants(self) -> int:
        return self.config.min_participants

    @property
    def max_participants(self) -> int:
        return self.config.max_participants

    @property
    def participant_count(self) -> int:
        return len(self.participants)

    @property
    def threshold_met(self) -> bool:
        return self.participant_count >= self.min_participants

    @property
    def verified_count(self) -> int:
        return sum(1 for p in self.participants if p.mcp_verified)

    def has_participant(self, address: str) -> bool:
        return any(p.stacks_address == address for p in self.participants)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "dao_id": self.dao_id,
            "moltbook_post_id": self.moltbook_post_id,
            "config": self.config.to_dict(),
            "proposer": self.proposer,
            "proposer_name": self.proposer_name,
            "participant_count": self.participant_count,
            "verified_count": self.verified_count,
            "status": self.status.value,
            "token_address": self.token_address,
            "treasury_address": self.treasury_address,
            "governance_address": self.governance_address,
            "created_at": self.created_at.isoformat(),
            "threshold_met_at": self.threshold_met_at.isoformat() if self.threshold_met_at else None,
            "deployed_at": self.deployed_at.isoformat() if self.deployed_at else None,
            "deployment_tx_ids": list(self.deployment_tx_ids),
            "deployment_error": self.deployment_error,
            "gas_used": self.gas_used,
            "participants": [
                {
                    "address": p.stacks_address,
                    "name": p.agent_name,
                    "verified": p.mcp_verified,
                    "allocation_bp": p.allocation_bp,
                    "joined_at": p.joined_at.isoformat(),
                    "claimed": p.claimed,
                    "reply_id": p.moltbook_reply_id,
                }
                for p in self.participants
            ]
        }

    @classmethod
    def from_dict(cls, d: dict) -> "DAOProposal":
        """Rebuild a proposal written by to_dict()."""
        participants = [
            Participant(
                stacks_address=p["address"],
                agent_name=p["name"],
                mcp_verified=p.get("verified", False),
                allocation_bp=p.get("allocation_bp", 0),
                joined_at=_parse_time(p.get("joined_at")) or datetime.now(),
                claimed=p.get("claimed", False),
                moltbook_reply_id=p.get("reply_id"),
            )
            for p in d.get("participants", [])
        ]

        return cls(
            dao_id=d["dao_id"],
            moltbook_post_id=d["moltbook_post_id"],
            config=DAOConfig.from_dict(d["config"]),
            proposer=d["proposer"],
            proposer_name=d["proposer_name"],
            participants=participants,
            status=DAOStatus(d["status"]),
            token_address=d.get("token_address"),
            treasury_address=d.get("treasury_address"),
            governance_address=d.get("governance_address"),
            created_at=_parse_time(d.get("created_at")) or datetime.now(),
            threshold_met_at=_parse_time(d.get("threshold_met_at")),
            deployed_at=_parse_time(d.get("deployed_at")),
            deployment_tx_ids=list(d.get("deployment_tx_ids", [])),
            deployment_error=d.get("deployment_error"),
            gas_used=d.get("gas_used"),
        )


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None
