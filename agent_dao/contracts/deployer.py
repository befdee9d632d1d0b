"""
Contract Deployer
=================
Deploys a DAO's contracts to Stacks and distributes its tokens.

Pipeline (strictly sequential, each step gated on the previous one):
1. Preflight balance check (run by the factory before any state change)
2. Deploy token contract, wait for confirmation
3. Deploy treasury contract (needs token address), wait for confirmation
4. Deploy governance contract (needs token + treasury), wait for confirmation
5. Distribution calls: founder, participants, treasury, verifier, finalize

Any failure aborts the rest of the pipeline. The DeploymentResult keeps
every tx id and address recorded before the failure.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional, List, Tuple

from ..chain import REJECTED_STATUSES, StacksAPIClient
from ..clarity import ClarityValue, Principal, UInt
from ..config import (
    DEFAULT_CALL_FEE,
    DEFAULT_DEPLOY_FEE,
    MIN_DEPLOY_BALANCE,
    NETWORKS,
    SBTC_CONTRACTS,
)
from ..errors import (
    ConfirmationTimeout,
    DAOFactoryError,
    FatalConfigError,
    RemoteError,
    TransactionRejected,
)
from ..signer import TransactionSigner
from ..dao.types import DAOConfig, DeploymentPlan, DeploymentResult
from .templates import (
    contract_name,
    generate_governance_contract,
    generate_token_contract,
    generate_treasury_contract,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded confirmation polling: max_attempts polls, fixed delay between."""
    max_attempts: int = 60
    interval_seconds: float = 5.0


class ConfirmationOutcome(Enum):
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class Confirmation:
    """Result of waiting for one transaction."""
    tx_id: str
    outcome: ConfirmationOutcome
    attempts: int
    detail: Optional[str] = None

    def raise_for_outcome(self):
        """Turn a non-confirmed outcome into the matching RemoteError."""
        if self.outcome == ConfirmationOutcome.REJECTED:
            raise TransactionRejected(self.tx_id, self.detail or "unknown")
        if self.outcome == ConfirmationOutcome.TIMED_OUT:
            raise ConfirmationTimeout(self.tx_id, self.attempts)


class NonceTracker:
    """Nonces used by one deployment run. Each must exceed the last."""

    def __init__(self):
        self.last: Optional[int] = None

    def advance(self, nonce: int) -> int:
        if self.last is not None and nonce <= self.last:
            raise RemoteError(
                f"Nonce did not advance (got {nonce}, last used {self.last})"
            )
        self.last = nonce
        return nonce


class ContractDeployer:
    """
    Deploys DAO contracts from a single sender account.

    Nonces are fetched from the chain before every transaction and never
    cached, so transactions sent by other tools in between are tolerated.
    Each run tracks its own nonces. Deployments sharing a sender should
    still be run one at a time.
    """

    def __init__(
        self,
        chain: StacksAPIClient,
        signer: TransactionSigner,
        sender_address: str,
        network: str = "testnet",
        retry_policy: Optional[RetryPolicy] = None,
        deploy_fee: int = DEFAULT_DEPLOY_FEE,
        call_fee: int = DEFAULT_CALL_FEE,
        min_balance: int = MIN_DEPLOY_BALANCE,
        deployment_timeout: Optional[float] = 1800.0,
    ):
        if not sender_address:
            raise FatalConfigError("Missing deployer address")
        if signer is None:
            raise FatalConfigError("Missing transaction signer")
        if network not in NETWORKS:
            raise FatalConfigError(f"Unknown network: {network}")

        self.chain = chain
        self.signer = signer
        self.sender_address = sender_address
        self.network = network
        self.chain_id = NETWORKS[network]["chain_id"]
        self.explorer_url = NETWORKS[network]["explorer_url"]
        self.sbtc_contract = SBTC_CONTRACTS[network]
        self.retry_policy = retry_policy or RetryPolicy()
        self.deploy_fee = deploy_fee
        self.call_fee = call_fee
        self.min_balance = min_balance
        self.deployment_timeout = deployment_timeout

    # ============================================================
    # Preflight
    # ============================================================

    async def check_balance(self) -> Tuple[int, bool]:
        """
        Check the sender holds enough STX to deploy.

        Returns (balance in microSTX, sufficient).
        """
        balance = await self.chain.get_stx_balance(self.sender_address)
        sufficient = balance >= self.min_balance
        print(f"[deploy] Sender balance: {balance / 1_000_000:.6f} STX "
              f"({'ok' if sufficient else 'insufficient'})")
        return balance, sufficient

    # ============================================================
    # Pipeline
    # ============================================================

    async def deploy(
        self,
        plan: DeploymentPlan,
        result: Optional[DeploymentResult] = None,
    ) -> DeploymentResult:
        """
        Deploy all contracts for `plan` and distribute tokens.

        Never raises for chain failures; they are reported in the result.
        Progress is recorded into `result` as it happens, so a caller that
        passes one in still sees it if anything else escapes.
        The whole run is bounded by `deployment_timeout`.
        """
        if result is None:
            result = DeploymentResult()
        if result.gas_used is None:
            result.gas_used = 0
        nonces = NonceTracker()

        try:
            if self.deployment_timeout:
                await asyncio.wait_for(
                    self._run(plan, result, nonces), self.deployment_timeout
                )
            else:
                await self._run(plan, result, nonces)
            result.success = True
        except asyncio.TimeoutError:
            result.error = f"Deployment timed out after {self.deployment_timeout:g}s"
        except DAOFactoryError as e:
            result.error = str(e)
        except ValueError as e:
            result.error = f"Invalid contract argument: {e}"

        if result.error:
            print(f"[deploy] Failed: {result.error}")
        return result

    async def _run(self, plan: DeploymentPlan, result: DeploymentResult, nonces: NonceTracker):
        await self.deploy_contracts(plan.config, result, nonces)
        await self.distribute_tokens(plan, result, nonces)

    async def deploy_contracts(
        self,
        config: DAOConfig,
        result: DeploymentResult,
        nonces: Optional[NonceTracker] = None,
    ):
        """Steps 2-4: token, treasury, governance, each confirmed before the next."""
        nonces = nonces or NonceTracker()

        token_name = contract_name(config.symbol, "token")
        print(f"[deploy] Deploying {config.symbol} token...")
        await self._deploy_and_confirm(
            token_name, generate_token_contract(config), result, nonces
        )
        result.addresses["token"] = self.contract_address(token_name)

        treasury_name = contract_name(config.symbol, "treasury")
        print("[deploy] Deploying treasury...")
        treasury_source = generate_treasury_contract(
            config,
            result.addresses["token"],
            self.sbtc_contract,
        )
        await self._deploy_and_confirm(treasury_name, treasury_source, result, nonces)
        result.addresses["treasury"] = self.contract_address(treasury_name)

        governance_name = contract_name(config.symbol, "governance")
        print("[deploy] Deploying governance...")
        governance_source = generate_governance_contract(
            config,
            result.addresses["token"],
            result.addresses["treasury"],
        )
        await self._deploy_and_confirm(governance_name, governance_source, result, nonces)
        result.addresses["governance"] = self.contract_address(governance_name)

    async def distribute_tokens(
        self,
        plan: DeploymentPlan,
        result: DeploymentResult,
        nonces: Optional[NonceTracker] = None,
    ):
        """
        Step 5: mint every allocation from the token contract.

        Calls are not confirmed one by one; each still gets a fresh nonce.
        """
        nonces = nonces or NonceTracker()
        token_address, token_name = result.addresses["token"].split(".")

        calls: List[Tuple[str, List[ClarityValue], str]] = [
            ("distribute-founder", [Principal(plan.proposer)], f"Founder: {plan.proposer}"),
        ]
        for address, allocation_bp in plan.eligible_participants:
            calls.append((
                "distribute-participant",
                [Principal(address), UInt(allocation_bp)],
                f"Participant: {address} ({allocation_bp}bp)",
            ))
        calls.append((
            "distribute-treasury",
            [Principal(result.addresses["treasury"])],
            f"Treasury: {result.addresses['treasury']}",
        ))
        calls.append(("distribute-verifier", [Principal(plan.verifier)], f"Verifier: {plan.verifier}"))
        calls.append(("finalize-distribution", [], "Finalizing distribution"))

        for function_name, args, label in calls:
            print(f"[distribute] {label}")
            tx_id = await self.call_contract(
                token_address, token_name, function_name, args, nonces=nonces
            )
            result.tx_ids.append(tx_id)
            result.gas_used += self.call_fee

    async def _deploy_and_confirm(
        self,
        name: str,
        source: str,
        result: DeploymentResult,
        nonces: NonceTracker,
    ):
        tx_id = await self.deploy_contract(name, source, nonces=nonces)
        result.tx_ids.append(tx_id)
        result.gas_used += self.deploy_fee
        print(f"[deploy] {name} TX: {self.explorer_link(tx_id)}")

        confirmation = await self.wait_for_confirmation(tx_id)
        confirmation.raise_for_outcome()

    def contract_address(self, name: str) -> str:
        """Fully qualified contract principal deployed by the sender."""
        return f"{self.sender_address}.{name}"

    def explorer_link(self, tx_id: str) -> str:
        return f"{self.explorer_url}/txid/{tx_id}?chain={self.network}"

    # ============================================================
    # Transactions
    # ============================================================

    async def deploy_contract(
        self,
        name: str,
        source: str,
        fee: Optional[int] = None,
        nonces: Optional[NonceTracker] = None,
    ) -> str:
        """Sign and broadcast a contract deployment. Returns the tx id."""
        nonce = await self._next_nonce(nonces)
        payload = {
            "type": "contract_deploy",
            "network": self.network,
            "chain_id": self.chain_id,
            "sender": self.sender_address,
            "contract_name": name,
            "code_body": source,
            "clarity_version": 3,
            "nonce": nonce,
            "fee": fee or self.deploy_fee,
            "anchor_mode": "any",
            "post_condition_mode": "allow",
        }
        try:
            return await self.chain.broadcast(self.signer.sign(payload))
        except RemoteError as e:
            raise RemoteError(f"Deploy of {name} failed: {e}") from e

    async def call_contract(
        self,
        contract_address: str,
        contract_name: str,
        function_name: str,
        args: List[ClarityValue],
        fee: Optional[int] = None,
        nonces: Optional[NonceTracker] = None,
    ) -> str:
        """Sign and broadcast a contract call. Returns the tx id."""
        nonce = await self._next_nonce(nonces)
        payload = {
            "type": "contract_call",
            "network": self.network,
            "chain_id": self.chain_id,
            "sender": self.sender_address,
            "contract_address": contract_address,
            "contract_name": contract_name,
            "function_name": function_name,
            "function_args": [arg.to_dict() for arg in args],
            "nonce": nonce,
            "fee": fee or self.call_fee,
            "anchor_mode": "any",
            "post_condition_mode": "allow",
        }
        try:
            return await self.chain.broadcast(self.signer.sign(payload))
        except RemoteError as e:
            raise RemoteError(f"Call {function_name} failed: {e}") from e

    async def _next_nonce(self, nonces: Optional[NonceTracker]) -> int:
        """Fresh nonce from the chain; within a run it must advance past the last one used."""
        nonce = await self.chain.get_next_nonce(self.sender_address)
        return nonces.advance(nonce) if nonces else nonce

    # ============================================================
    # Confirmation
    # ============================================================

    async def wait_for_confirmation(self, tx_id: str) -> Confirmation:
        """
        Poll a transaction until it succeeds, is rejected, or the retry
        budget runs out. Not-yet-found and pending are retried.
        """
        policy = self.retry_policy

        for attempt in range(1, policy.max_attempts + 1):
            tx = await self.chain.get_tx_status(tx_id)

            if tx is not None:
                if tx["status"] == "success":
                    print(f"[confirm] {tx_id} confirmed after {attempt} attempt(s)")
                    return Confirmation(tx_id, ConfirmationOutcome.CONFIRMED, attempt)
                if tx["status"] in REJECTED_STATUSES:
                    print(f"[confirm] {tx_id} rejected: {tx['status']}")
                    return Confirmation(
                        tx_id,
                        ConfirmationOutcome.REJECTED,
                        attempt,
                        tx.get("result") or tx["status"],
                    )

            if attempt < policy.max_attempts:
                await asyncio.sleep(policy.interval_seconds)

        print(f"[confirm] {tx_id} not confirmed after {policy.max_attempts} attempts")
        return Confirmation(tx_id, ConfirmationOutcome.TIMED_OUT, policy.max_attempts)
