"""
Contract Templates
==================
Fill the Clarity templates in `source/` with DAO-specific values.
"""

from pathlib import Path
from string import Template

from ..config import SBTC_CONTRACTS
from ..dao.types import DAOConfig, GovernancePhase

TEMPLATES_DIR = Path(__file__).parent / "source"

PHASE_CODES = {
    GovernancePhase.FOUNDER_CONTROL: 1,
    GovernancePhase.TRANSITIONING: 2,
    GovernancePhase.DECENTRALIZED: 3,
}


def contract_name(symbol: str, kind: str) -> str:
    """On-chain contract name, e.g. poet-token."""
    return f"{symbol.lower()}-{kind}"


def _percent(bp: int) -> str:
    whole, frac = divmod(bp, 100)
    return f"{whole}.{frac:02d}".rstrip("0").rstrip(".")


def _ascii_literal(text: str) -> str:
    """Escape text for use inside a Clarity string-ascii literal."""
    safe = text.encode("ascii", "replace").decode()
    return safe.replace("\\", "\\\\").replace('"', '\\"')


def _render(template_name: str, **values) -> str:
    source = (TEMPLATES_DIR / template_name).read_text()
    return Template(source).substitute(**values).strip()


def generate_token_contract(config: DAOConfig) -> str:
    """SIP-010 governance token with the DAO's allocation schedule."""
    return _render(
        "token.clar",
        name=_ascii_literal(config.name),
        symbol=config.symbol,
        token_id=config.symbol.lower(),
        total_supply=config.total_supply,
        founder_bp=config.founder_bp,
        participant_bp=config.participant_bp,
        treasury_bp=config.treasury_bp,
        verifier_bp=config.verifier_bp,
        founder_pct=_percent(config.founder_bp),
        participant_pct=_percent(config.participant_bp),
        treasury_pct=_percent(config.treasury_bp),
        verifier_pct=_percent(config.verifier_bp),
    )


def generate_treasury_contract(
    config: DAOConfig,
    token_address: str,
    sbtc_contract: str = SBTC_CONTRACTS["mainnet"],
) -> str:
    """Multi-asset treasury bound to the DAO token."""
    return _render(
        "treasury.clar",
        name=_ascii_literal(config.name),
        token_address=token_address,
        sbtc_contract=sbtc_contract,
        profit_distribution_bp=config.profit_distribution_bp,
        reinvestment_bp=config.reinvestment_bp,
        distribution_pct=_percent(config.profit_distribution_bp),
        reinvestment_pct=_percent(config.reinvestment_bp),
    )


def generate_governance_contract(
    config: DAOConfig,
    token_address: str,
    treasury_address: str,
) -> str:
    """Hybrid founder-to-token-holder governance."""
    return _render(
        "governance.clar",
        name=_ascii_literal(config.name),
        token_address=token_address,
        treasury_address=treasury_address,
        voting_quorum=config.voting_quorum,
        voting_threshold=config.voting_threshold,
        core_change_threshold=config.core_change_threshold,
        proposal_bond=config.proposal_bond,
        total_supply=config.total_supply,
        initial_phase=PHASE_CODES[config.governance_phase],
    )
