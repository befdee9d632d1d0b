#!/usr/bin/env python3
"""
Agent DAO Factory - Main Entry Point
====================================

Create DAOs for AI agents from Moltbook discussions:
1. Collect a whitelist of participant agents
2. Split tokens between founder, participants, treasury and verifier
3. Deploy token, treasury and governance contracts to Stacks

Setup:
    pip install -e .
    # Put DEPLOYER_PRIVATE_KEY and DEPLOYER_ADDRESS in .env

Commands:
    python main.py generate [name] [symbol] [out_dir]  # Write contracts
    python main.py preview <dao_id>                    # Show allocations
    python main.py deploy <dao_id>                     # Deploy a proposal
    python main.py status                              # Factory statistics
    python main.py help                                # This message

Environment Variables:
    STACKS_NETWORK        - mainnet or testnet
    DEPLOYER_PRIVATE_KEY  - Stacks private key (hex)
    DEPLOYER_ADDRESS      - Stacks address of the deployer
    VERIFIER_ADDRESS      - Address for verifier allocation
    DAO_DATA_DIR          - Where proposals are stored
"""

import asyncio
import json
import sys
from typing import Optional

from agent_dao.config import FactoryConfig
from agent_dao.dao import build_config, create_factory_from_env, generate_contracts
from agent_dao.errors import DAOFactoryError, FatalConfigError


async def main():
    """Main entry point."""
    args = sys.argv[1:]
    command = args[0] if args else "help"

    print("\n  Agent DAO Factory\n")

    if command == "generate":
        name = args[1] if len(args) > 1 else "TestDAO"
        symbol = args[2] if len(args) > 2 else "TEST"
        out_dir = args[3] if len(args) > 3 else "./generated"

        config = FactoryConfig.from_env()
        dao_config = build_config(name, symbol, "Generated DAO")
        sender = config.deployer_address or "SP000000000000000000002Q6VF78"

        print(f"  Generating {name} ({dao_config.symbol}) contracts...\n")
        paths = generate_contracts(dao_config, sender, out_dir, config.network)

        print(f"  [OK] Generated contracts in {out_dir}/")
        for path in paths:
            print(f"    - {path.name}")

    elif command in ("preview", "deploy"):
        dao_id = _parse_dao_id(args)
        if dao_id is None:
            print(f"Usage: python main.py {command} <dao_id>")
            return

        factory = create_factory_from_env()
        try:
            if command == "preview":
                print(json.dumps(factory.preview_deployment(dao_id), indent=2))
                return
            outcome = await factory.deploy(dao_id)
        finally:
            await factory.deployer.chain.aclose()

        print(f"  {'[OK]' if outcome.success else '[FAILED]'} {outcome.message}")
        if outcome.deployment:
            print(json.dumps(outcome.deployment.to_dict(), indent=2))

    elif command == "status":
        try:
            factory = create_factory_from_env()
        except FatalConfigError as e:
            print(f"  {e}")
            print("  Set deployer credentials to inspect proposals.")
            return

        try:
            stats = factory.get_stats()
        finally:
            await factory.deployer.chain.aclose()

        print("  Stats:")
        print(f"    Network:            {stats['network']}")
        print(f"    Total Proposals:    {stats['total_proposals']}")
        print(f"    Total Participants: {stats['total_participants']}")
        print(f"    Ready to Deploy:    {stats['ready_to_deploy']}")
        print(f"    By Status:          {json.dumps(stats['by_status'])}")

    else:
        print(__doc__)


def _parse_dao_id(args) -> Optional[int]:
    """DAO id from the second CLI argument, or None if missing or not a number."""
    if len(args) < 2:
        return None
    try:
        return int(args[1])
    except ValueError:
        return None


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except DAOFactoryError as e:
        print(f"  Error: {e}")
        sys.exit(1)
