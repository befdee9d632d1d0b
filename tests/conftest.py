"""
Shared fixtures: an in-memory Stacks chain and a deployer wired to it.
"""

import json

import pytest

from agent_dao.contracts.deployer import ContractDeployer, RetryPolicy
from agent_dao.dao.factory import DAOFactory
from agent_dao.dao.registry import ProposalRegistry

DEPLOYER = "ST1PQHQKV0RJXZFY1DGX8MNSNYVE3VGZJSRTPGZGM"
PROPOSER = "SP3N0NQ47ABAZV68PQSJY7V2H4F2J709ATTESYBRD"
VERIFIER = "SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7"


def make_address(i: int) -> str:
    """Deterministic, valid mainnet address for participant i."""
    return f"SP{i:038d}"


class JsonSigner:
    """Signs nothing; hands the payload through as JSON."""

    def sign(self, payload: dict) -> bytes:
        return json.dumps(payload).encode()


class FakeChain:
    """
    In-memory stand-in for StacksAPIClient.

    Nonces advance with each broadcast. `status_script` maps a contract
    name to the statuses its deployment reports on successive polls
    (None = not found yet); the last entry repeats.
    """

    def __init__(self, balance: int = 10_000_000):
        self.balance = balance
        self.nonce = 0
        self.broadcasts = []
        self.tx_payloads = {}
        self.status_script = {}
        self.status_polls = {}
        self.requests = []
        self.broadcast_error = None  # (function or contract name, RemoteError)

    async def get_stx_balance(self, address):
        self.requests.append(("balance", address))
        if isinstance(self.balance, Exception):
            raise self.balance
        return self.balance

    async def get_next_nonce(self, address):
        self.requests.append(("nonce", address))
        return self.nonce

    async def broadcast(self, raw_tx):
        payload = json.loads(raw_tx)
        self.requests.append(("broadcast", payload["nonce"]))
        name = payload.get("contract_name") if payload["type"] == "contract_deploy" \
            else payload["function_name"]
        if self.broadcast_error and self.broadcast_error[0] == name:
            raise self.broadcast_error[1]

        self.broadcasts.append(payload)
        tx_id = f"0x{len(self.broadcasts):064x}"
        self.tx_payloads[tx_id] = payload
        self.nonce += 1
        return tx_id

    async def get_tx_status(self, tx_id):
        self.requests.append(("status", tx_id))
        self.status_polls[tx_id] = self.status_polls.get(tx_id, 0) + 1

        payload = self.tx_payloads[tx_id]
        script = self.status_script.get(payload.get("contract_name"))
        if not script:
            status = "success"
        elif len(script) > 1:
            status = script.pop(0)
        else:
            status = script[0]

        if status is None:
            return None
        return {"status": status, "result": "(err u2001)" if status.startswith("abort") else "(ok true)"}

    async def aclose(self):
        pass

    # Helpers for assertions

    @property
    def deployed_contracts(self):
        return [p["contract_name"] for p in self.broadcasts if p["type"] == "contract_deploy"]

    @property
    def called_functions(self):
        return [p["function_name"] for p in self.broadcasts if p["type"] == "contract_call"]

    def calls_to(self, function_name):
        return [p for p in self.broadcasts if p.get("function_name") == function_name]


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def deployer(chain):
    return ContractDeployer(
        chain=chain,
        signer=JsonSigner(),
        sender_address=DEPLOYER,
        network="testnet",
        retry_policy=RetryPolicy(max_attempts=60, interval_seconds=0),
        deployment_timeout=30,
    )


@pytest.fixture
def registry():
    return ProposalRegistry()


@pytest.fixture
def factory(deployer, registry):
    return DAOFactory(deployer, verifier_address=VERIFIER, registry=registry)
