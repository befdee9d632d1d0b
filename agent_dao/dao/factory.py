"""
DAO Factory
===========
Creates agent DAO proposals and deploys those that have met their
participant threshold.
"""

import asyncio
from pathlib import Path
from typing import Optional, List, Dict, Any

from ..chain import StacksAPIClient
from ..config import SBTC_CONTRACTS, FactoryConfig
from ..contracts.deployer import ContractDeployer, RetryPolicy
from ..contracts.templates import (
    contract_name,
    generate_governance_contract,
    generate_token_contract,
    generate_treasury_contract,
)
from ..errors import (
    ActionResult,
    FailureReason,
    FatalConfigError,
    RemoteError,
    fail,
)
from ..signer import KeySigner
from .allocation import calculate_allocations, equal_split_bp, format_tokens
from .registry import ProposalRegistry
from .types import (
    DAOConfig,
    DAOProposal,
    DAOStatus,
    DeploymentPlan,
    DeploymentResult,
    TokenAllocation,
)


class DAOFactory:
    """
    Factory for agent DAOs.

    Wires the proposal registry, the allocation calculator and the
    contract deployer into one API.

    Usage:
        factory = create_factory_from_env()
        proposal = factory.create_proposal("post-123", "PoetAI", "POET", ...)
        factory.add_participant(proposal.dao_id, "SP2...", "coder-agent", True)
        result = await factory.deploy(proposal.dao_id)
    """

    def __init__(
        self,
        deployer: ContractDeployer,
        verifier_address: Optional[str] = None,
        registry: Optional[ProposalRegistry] = None,
    ):
        self.deployer = deployer
        self.verifier_address = verifier_address or deployer.sender_address
        if not self.verifier_address:
            raise FatalConfigError("Missing verifier address")
        self.registry = registry or ProposalRegistry()

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
        """Create a new DAO proposal from a Moltbook post."""
        return self.registry.create_proposal(
            moltbook_post_id=moltbook_post_id,
            name=name,
            symbol=symbol,
            description=description,
            proposer_address=proposer_address,
            proposer_name=proposer_name,
            config_overrides=config_overrides,
        )

    def get_proposal(self, dao_id: int) -> Optional[DAOProposal]:
        return self.registry.get_proposal(dao_id)

    def get_all_proposals(self) -> List[DAOProposal]:
        return self.registry.get_all_proposals()

    def add_participant(
        self,
        dao_id: int,
        address: str,
        agent_name: str,
        mcp_verified: bool = False,
        moltbook_reply_id: Optional[str] = None,
    ) -> ActionResult:
        """Add participant to a proposal's whitelist."""
        return self.registry.add_participant(
            dao_id, address, agent_name, mcp_verified, moltbook_reply_id
        )

    def finalize_allocations(self, dao_id: int) -> bool:
        return self.registry.finalize_allocations(dao_id)

    def calculate_allocations(self, dao_id: int) -> List[TokenAllocation]:
        """Token allocations for every recipient of a proposal."""
        proposal = self.registry.get_proposal(dao_id)
        if not proposal:
            return []
        return calculate_allocations(
            proposal.config,
            proposal.proposer,
            proposal.participants,
            treasury=proposal.treasury_address,
            verifier=self.verifier_address,
        )

    # ============================================================
    # Deployment
    # ============================================================

    async def deploy(self, dao_id: int) -> ActionResult:
        """
        Deploy a DAO from a proposal.

        Refuses unknown, deployed, under-threshold, in-flight or failed
        proposals, and senders without enough STX, before anything is
        sent. Otherwise the proposal ends DEPLOYED or FAILED, with every
        address and tx id obtained recorded either way.
        """
        gate = self.registry.check_deployable(dao_id)
        if not gate:
            return gate

        try:
            balance, sufficient = await self.deployer.check_balance()
        except RemoteError as e:
            return fail(FailureReason.REMOTE_ERROR, f"Balance check failed: {e}")
        if not sufficient:
            return fail(
                FailureReason.INSUFFICIENT_FUNDS,
                f"Insufficient STX for deployment ({balance / 1_000_000:.6f} STX)",
            )

        started = self.registry.begin_deployment(dao_id)
        if not started:
            return started

        plan = self._build_plan(self.registry.get_proposal(dao_id))
        print(f"[factory] Deploying DAO #{dao_id} ({plan.config.symbol})")

        result = DeploymentResult(gas_used=0)
        try:
            await self.deployer.deploy(plan, result)
        except (Exception, asyncio.CancelledError) as e:
            # Never leave the proposal in DEPLOYING
            result.success = False
            result.error = result.error or f"Deployment aborted: {type(e).__name__}: {e}"
            print(f"[factory] DAO #{dao_id} aborted: {result.error}")
            self.registry.mark_failed(dao_id, result)
            raise

        if not result.success:
            self.registry.mark_failed(dao_id, result)
            return fail(
                FailureReason.DEPLOYMENT_FAILED,
                f"Deployment failed: {result.error}",
                deployment=result,
            )

        self.registry.mark_deployed(dao_id, result)
        print(f"[factory] DAO #{dao_id} deployed: {result.addresses.get('token')}")
        return ActionResult(
            success=True,
            message="DAO deployed successfully",
            deployment=result,
        )

    def _build_plan(self, proposal: DAOProposal) -> DeploymentPlan:
        return DeploymentPlan(
            dao_id=proposal.dao_id,
            config=proposal.config,
            proposer=proposal.proposer,
            verifier=self.verifier_address,
            participants=tuple(
                (p.stacks_address, p.allocation_bp)
                for p in proposal.participants
                if p.stacks_address != proposal.proposer
            ),
        )

    async def check_and_deploy_ready(self) -> List[dict]:
        """
        Deploy every proposal that has met its threshold.

        Runs one deployment at a time since they share a sender.
        """
        results = []

        for proposal in self.registry.get_ready_proposals():
            outcome = await self.deploy(proposal.dao_id)
            results.append({
                "dao_id": proposal.dao_id,
                "name": proposal.name,
                "success": outcome.success,
                "message": outcome.message,
                "deployment": outcome.deployment.to_dict() if outcome.deployment else None,
            })

        return results

    # ============================================================
    # Previews
    # ============================================================

    def preview_deployment(self, dao_id: int) -> dict:
        """
        Preview what would happen if DAO were deployed.

        Allocations are shown as they would be after finalization.
        """
        proposal = self.registry.get_proposal(dao_id)
        if not proposal:
            return {"error": "Proposal not found"}

        others = [p for p in proposal.participants if p.stacks_address != proposal.proposer]
        if others and proposal.status in (DAOStatus.GATHERING, DAOStatus.THRESHOLD_MET):
            share = equal_split_bp(len(others))
            for p in others:
                p.allocation_bp = share

        allocations = calculate_allocations(
            proposal.config,
            proposal.proposer,
            proposal.participants,
            treasury=proposal.treasury_address,
            verifier=self.verifier_address,
        )

        return {
            "dao_id": dao_id,
            "name": proposal.name,
            "symbol": proposal.symbol,
            "status": proposal.status.value,
            "threshold_met": proposal.threshold_met,
            "participant_count": proposal.participant_count,
            "verified_count": proposal.verified_count,
            "contracts": [
                contract_name(proposal.symbol, kind)
                for kind in ("token", "treasury", "governance")
            ],
            "allocations": [
                {
                    "recipient": a.recipient,
                    "type": a.allocation_type,
                    "tokens": format_tokens(a.amount),
                    "percent": f"{a.allocation_bp / 100:.2f}%",
                }
                for a in allocations
            ],
            "total_supply": format_tokens(proposal.config.total_supply),
            "network": self.deployer.network,
        }

    def get_stats(self) -> dict:
        """Get factory statistics."""
        stats = self.registry.get_stats()
        stats["network"] = self.deployer.network
        stats["deployer"] = self.deployer.sender_address
        return stats


def generate_contracts(
    config: DAOConfig,
    sender_address: str,
    out_dir: str,
    network: str = "mainnet",
) -> List[Path]:
    """
    Write the three contract sources for `config` to `out_dir`.

    Dependent addresses assume `sender_address` deploys all three.
    """
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)

    token = f"{sender_address}.{contract_name(config.symbol, 'token')}"
    treasury = f"{sender_address}.{contract_name(config.symbol, 'treasury')}"

    sources = {
        "token": generate_token_contract(config),
        "treasury": generate_treasury_contract(config, token, SBTC_CONTRACTS[network]),
        "governance": generate_governance_contract(config, token, treasury),
    }

    written = []
    for kind, source in sources.items():
        path = out / f"{contract_name(config.symbol, kind)}.clar"
        path.write_text(source + "\n")
        written.append(path)
    return written


def create_factory_from_env(config: Optional[FactoryConfig] = None) -> DAOFactory:
    """
    Create a DAO factory from environment variables.

    Raises FatalConfigError when deployer credentials are missing.
    """
    config = config or FactoryConfig.from_env()
    config.require_credentials()

    deployer = ContractDeployer(
        chain=StacksAPIClient(config.stacks_api_url, timeout=config.request_timeout),
        signer=KeySigner(config.deployer_private_key),
        sender_address=config.deployer_address,
        network=config.network,
        retry_policy=RetryPolicy(
            max_attempts=config.confirmation_attempts,
            interval_seconds=config.confirmation_interval,
        ),
        deploy_fee=config.deploy_fee,
        call_fee=config.call_fee,
        min_balance=config.min_deploy_balance,
        deployment_timeout=config.deployment_timeout,
    )

    return DAOFactory(
        deployer,
        verifier_address=config.verifier_address,
        registry=ProposalRegistry(config.data_dir),
    )
