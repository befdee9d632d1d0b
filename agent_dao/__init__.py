"""
Agent DAO Factory
=================
Whitelist participants, compute token allocations and deploy agent
DAOs (token, treasury, governance) to Stacks.

Token structure: 50% founder, 30% participants, 15% treasury, 5% verifier.
"""

from .dao import DAOFactory, create_factory_from_env
from .errors import ActionResult, FailureReason

__all__ = [
    "DAOFactory",
    "create_factory_from_env",
    "ActionResult",
    "FailureReason",
]
