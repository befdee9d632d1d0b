"""
Proposal Registry
=================
Owns every DAO proposal and its participant whitelist.

All status transitions happen here, under a per-proposal lock, so
concurrent callers cannot race past capacity, threshold or deploy
checks. Proposals can optionally be snapshotted to disk.
"""

import copy
import json
import re
import threading
from pathlib import Path
from datetime import datetime
from typing import Optional, List, Dict, Any

from ..errors import (
    ActionResult,
    FailureReason,
    StateError,
    fail,
)
from .allocation import equal_split_bp
from .types import (
    ALLOWED_TRANSITIONS,
    BP_DENOMINATOR,
    DAOProposal,
    DAOStatus,
    DeploymentResult,
    Participant,
    build_config,
)

# SP (mainnet) or ST (testnet), then c32 characters
STACKS_ADDRESS_RE = re.compile(r"^S[PT][A-Za-z0-9]+$")
MIN_ADDRESS_LENGTH = 30


def is_valid_stacks_address(address: str) -> bool:
    """Validate Stacks address format."""
    return (
        isinstance(address, str)
        and len(address) >= MIN_ADDRESS_LENGTH
        and STACKS_ADDRESS_RE.match(address) is not None
    )


class ProposalRegistry:
    """Keyed store of DAO proposals with per-proposal locking."""

    def __init__(self, data_dir: Optional[str] = None):
        self.data_dir = Path(data_dir) if data_dir else None
        self._proposals: Dict[int, DAOProposal] = {}
        self._locks: Dict[int, threading.RLock] = {}
        self._registry_lock = threading.RLock()
        self._next_id = 1

        if self.data_dir:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            self._load_proposals()

    # ============================================================
    # Persistence
    # ============================================================

    @property
    def _proposals_file(self) -> Path:
        return self.data_dir / "proposals.json"

    def _load_proposals(self):
        """Load proposals from disk."""
        if not self._proposals_file.exists():
            return
        data = json.loads(self._proposals_file.read_text())
        for d in data.get("proposals", []):
            proposal = DAOProposal.from_dict(d)
            self._proposals[proposal.dao_id] = proposal
            self._locks[proposal.dao_id] = threading.RLock()
        highest = max(self._proposals, default=0)
        self._next_id = max(data.get("next_id", 1), highest + 1)
        print(f"[registry] Loaded {len(self._proposals)} proposals from {self._proposals_file}")

    def _save_proposals(self):
        """Save proposals to disk."""
        if not self.data_dir:
            return
        with self._registry_lock:
            snapshots = []
            for dao_id in sorted(self._proposals):
                with self._locks[dao_id]:
                    snapshots.append(self._proposals[dao_id].to_dict())
            data = {
                "proposals": snapshots,
                "next_id": self._next_id,
                "updated_at": datetime.now().isoformat(),
            }
            tmp = self._proposals_file.with_suffix(".tmp")
            tmp.write_text(json.dumps(data, indent=2))
            tmp.replace(self._proposals_file)

    # ============================================================
    # Proposal Management
    # ============================================================

    def create_proposal(
        self,
        moltbook_post_id: str,
        name: str,
        symbol: str,
        description: str,
        proposer_address: str,
        proposer_name: str,
        config_overrides: Optional[Dict[str, Any]] = None,
    ) -> DAOProposal:
        """
        Create a new DAO proposal.

        The proposer is seeded as the first participant, verified, with
        the whole participant pool until allocations are finalized.
        Raises InvalidConfigError for a bad override.
        """
        config = build_config(name, symbol, description, config_overrides)

        with self._registry_lock:
            dao_id = self._next_id
            self._next_id += 1

            proposal = DAOProposal(
                dao_id=dao_id,
                moltbook_post_id=moltbook_post_id,
                config=config,
                proposer=proposer_address,
                proposer_name=proposer_name,
                participants=[
                    Participant(
                        stacks_address=proposer_address,
                        agent_name=proposer_name,
                        mcp_verified=True,  # Proposer assumed verified
                        allocation_bp=BP_DENOMINATOR,
                    )
                ],
            )
            self._proposals[dao_id] = proposal
            self._locks[dao_id] = threading.RLock()

        print(f"[registry] Created proposal #{dao_id}: {config.name} ({config.symbol})")
        self._save_proposals()
        return copy.deepcopy(proposal)

    def get_proposal(self, dao_id: int) -> Optional[DAOProposal]:
        """Get a copy of a proposal by ID."""
        lock = self._locks.get(dao_id)
        if lock is None:
            return None
        with lock:
            return copy.deepcopy(self._proposals[dao_id])

    def get_proposal_by_post(self, moltbook_post_id: str) -> Optional[DAOProposal]:
        """Get proposal by Moltbook post ID."""
        for proposal in self.get_all_proposals():
            if proposal.moltbook_post_id == moltbook_post_id:
                return proposal
        return None

    def get_all_proposals(self) -> List[DAOProposal]:
        with self._registry_lock:
            ids = sorted(self._proposals)
        return [p for p in (self.get_proposal(i) for i in ids) if p is not None]

    def get_ready_proposals(self) -> List[DAOProposal]:
        """Get proposals that have met threshold and are ready to deploy."""
        return [
            p for p in self.get_all_proposals()
            if p.status == DAOStatus.THRESHOLD_MET
        ]

    # ============================================================
    # Participant Management
    # ============================================================

    def add_participant(
        self,
        dao_id: int,
        address: str,
        agent_name: str,
        mcp_verified: bool = False,
        moltbook_reply_id: Optional[str] = None,
    ) -> ActionResult:
        """Add participant to whitelist."""
        lock = self._locks.get(dao_id)
        if lock is None:
            return fail(FailureReason.NOT_FOUND, "Proposal not found")

        with lock:
            proposal = self._proposals[dao_id]

            if proposal.status not in (DAOStatus.GATHERING, DAOStatus.THRESHOLD_MET):
                return fail(FailureReason.INVALID_STATE, "Proposal not accepting participants")

            if proposal.participant_count >= proposal.max_participants:
                return fail(FailureReason.CAPACITY_EXCEEDED, "Max participants reached")

            if proposal.has_participant(address):
                return fail(FailureReason.DUPLICATE, "Already in whitelist")

            if not is_valid_stacks_address(address):
                return fail(FailureReason.INVALID_ADDRESS, "Invalid Stacks address")

            proposal.participants.append(Participant(
                stacks_address=address,
                agent_name=agent_name,
                mcp_verified=mcp_verified,
                moltbook_reply_id=moltbook_reply_id,
            ))

            if proposal.status == DAOStatus.GATHERING and proposal.threshold_met:
                self._transition(proposal, DAOStatus.THRESHOLD_MET)

        self._save_proposals()
        return ActionResult(
            success=True,
            message=f"Added to whitelist (MCP: {'verified' if mcp_verified else 'not verified'})",
        )

    def finalize_allocations(self, dao_id: int) -> bool:
        """
        Split the participant pool equally between non-proposer participants.

        Overwrites any previous per-participant allocation.
        """
        lock = self._locks.get(dao_id)
        if lock is None:
            return False

        with lock:
            finalized = self._finalize(self._proposals[dao_id])

        if finalized:
            self._save_proposals()
        return finalized

    def _finalize(self, proposal: DAOProposal) -> bool:
        others = proposal.participant_count - 1  # Exclude founder
        if others <= 0:
            return False

        allocation_per = equal_split_bp(others)
        for p in proposal.participants:
            if p.stacks_address != proposal.proposer:
                p.allocation_bp = allocation_per
        return True

    # ============================================================
    # Deployment Lifecycle
    # ============================================================

    def check_deployable(self, dao_id: int) -> ActionResult:
        """Check whether a proposal may start deploying. No side effects."""
        lock = self._locks.get(dao_id)
        if lock is None:
            return fail(FailureReason.NOT_FOUND, "Proposal not found")
        with lock:
            return self._deploy_gate(self._proposals[dao_id])

    def _deploy_gate(self, proposal: DAOProposal) -> ActionResult:
        if proposal.status == DAOStatus.DEPLOYED:
            return fail(FailureReason.ALREADY_DEPLOYED, "Already deployed")

        if proposal.participant_count < proposal.min_participants:
            return fail(
                FailureReason.THRESHOLD_NOT_MET,
                f"Threshold not met ({proposal.participant_count}/{proposal.min_participants})",
            )

        if proposal.status == DAOStatus.DEPLOYING:
            return fail(FailureReason.INVALID_STATE, "Deployment already in progress")

        if proposal.status == DAOStatus.FAILED:
            return fail(
                FailureReason.INVALID_STATE,
                f"Deployment previously failed: {proposal.deployment_error}",
            )

        return ActionResult(success=True, message="Ready to deploy")

    def begin_deployment(self, dao_id: int) -> ActionResult:
        """
        Finalize allocations and move the proposal to DEPLOYING.

        The gate is re-checked under the lock so only one caller wins.
        """
        lock = self._locks.get(dao_id)
        if lock is None:
            return fail(FailureReason.NOT_FOUND, "Proposal not found")

        with lock:
            proposal = self._proposals[dao_id]
            gate = self._deploy_gate(proposal)
            if not gate:
                return gate

            self._finalize(proposal)
            if proposal.status == DAOStatus.GATHERING:
                self._transition(proposal, DAOStatus.THRESHOLD_MET)
            self._transition(proposal, DAOStatus.DEPLOYING)

        self._save_proposals()
        return ActionResult(success=True, message="Deploying")

    def mark_deployed(self, dao_id: int, result: DeploymentResult) -> bool:
        """Mark proposal as deployed with contract addresses."""
        return self._complete(dao_id, result, DAOStatus.DEPLOYED)

    def mark_failed(self, dao_id: int, result: DeploymentResult) -> bool:
        """Mark proposal as failed, keeping whatever was deployed."""
        return self._complete(dao_id, result, DAOStatus.FAILED)

    def _complete(self, dao_id: int, result: DeploymentResult, status: DAOStatus) -> bool:
        lock = self._locks.get(dao_id)
        if lock is None:
            return False

        with lock:
            proposal = self._proposals[dao_id]
            self._transition(proposal, status)
            proposal.token_address = result.addresses.get("token")
            proposal.treasury_address = result.addresses.get("treasury")
            proposal.governance_address = result.addresses.get("governance")
            proposal.deployment_tx_ids = list(result.tx_ids)
            proposal.deployment_error = result.error
            proposal.gas_used = result.gas_used
            if status == DAOStatus.DEPLOYED:
                proposal.deployed_at = datetime.now()

        self._save_proposals()
        return True

    def _transition(self, proposal: DAOProposal, new_status: DAOStatus):
        """Apply a forward status move. Caller holds the proposal lock."""
        if new_status not in ALLOWED_TRANSITIONS[proposal.status]:
            raise StateError(
                f"Proposal #{proposal.dao_id}: cannot move from "
                f"{proposal.status.value} to {new_status.value}"
            )
        print(f"[registry] Proposal #{proposal.dao_id}: {proposal.status.value} -> {new_status.value}")
        proposal.status = new_status
        if new_status == DAOStatus.THRESHOLD_MET:
            proposal.threshold_met_at = datetime.now()

    # ============================================================
    # Statistics
    # ============================================================

    def get_stats(self) -> dict:
        """Get registry statistics."""
        proposals = self.get_all_proposals()
        by_status = {}
        total_participants = 0

        for p in proposals:
            status = p.status.value
            by_status[status] = by_status.get(status, 0) + 1
            total_participants += p.participant_count

        return {
            "total_proposals": len(proposals),
            "total_participants": total_participants,
            "by_status": by_status,
            "ready_to_deploy": by_status.get(DAOStatus.THRESHOLD_MET.value, 0),
        }
