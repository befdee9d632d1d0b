"""
Unit Tests for the Command Line
===============================
Argument handling and client cleanup for each command.

Run: python -m pytest tests/test_main.py -v
"""

import sys
from unittest.mock import AsyncMock

import pytest

import main

from conftest import PROPOSER


@pytest.fixture
def cli(monkeypatch, factory, chain):
    """Run main() with the given arguments against the in-memory factory."""
    chain.aclose = AsyncMock()
    monkeypatch.setattr(main, "create_factory_from_env", lambda: factory)

    async def run(*args):
        monkeypatch.setattr(sys, "argv", ["main.py", *args])
        await main.main()

    return run


class TestDaoIdArgument:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("command", ["preview", "deploy"])
    async def test_non_numeric_id(self, cli, chain, capsys, command):
        await cli(command, "abc")

        assert f"Usage: python main.py {command} <dao_id>" in capsys.readouterr().out
        assert chain.requests == []

    @pytest.mark.asyncio
    async def test_missing_id(self, cli, capsys):
        await cli("deploy")
        assert "Usage: python main.py deploy <dao_id>" in capsys.readouterr().out


class TestClientClosed:

    @pytest.mark.asyncio
    async def test_preview(self, cli, factory, chain, capsys):
        proposal = factory.create_proposal("post-1", "PoetAI", "POET", "AI poetry", PROPOSER, "founder")

        await cli("preview", str(proposal.dao_id))

        assert '"symbol": "POET"' in capsys.readouterr().out
        chain.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_status(self, cli, chain, capsys):
        await cli("status")

        assert "Total Proposals:    0" in capsys.readouterr().out
        chain.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_deploy_unknown_proposal(self, cli, chain, capsys):
        await cli("deploy", "42")

        assert "[FAILED] Proposal not found" in capsys.readouterr().out
        chain.aclose.assert_awaited_once()


def test_parse_dao_id():
    assert main._parse_dao_id(["deploy", "7"]) == 7
    assert main._parse_dao_id(["deploy", "seven"]) is None
    assert main._parse_dao_id(["deploy"]) is None
