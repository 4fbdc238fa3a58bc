import argparse
import logging
import sys

from mint_config import ConfigError, MintConfig

logger = logging.getLogger(__name__)

STRATEGIES = ('hybrid', 'sequential')


def build_parser():
    parser = argparse.ArgumentParser(description='SeaDrop public drop minter')

    # Required arguments
    parser.add_argument('chain', help='Chain name from config (e.g., base, ethereum, apechain)')

    # Optional arguments
    parser.add_argument('-c', '--config', default='config.json',
                        help='Path to configuration file (default: config.json)')
    parser.add_argument('-k', '--keys',
                        help='Private key file, one key per line (default: private_key_file from config)')
    parser.add_argument('--nft', help='NFT contract address')
    parser.add_argument('-n', '--total', type=int, help='How many NFTs to mint per wallet')
    parser.add_argument('-g', '--gas-price',
                        help='Gas price in Gwei (e.g. 0.3 or "5 gwei"); blank uses node price x multiplier')
    parser.add_argument('-l', '--gas-limit', type=int, help='Gas limit per transaction (default: 150000)')
    parser.add_argument('-s', '--strategy', choices=STRATEGIES, default='hybrid',
                        help='hybrid: rapid single-unit sends with concurrent confirmation checks; '
                             'sequential: one multi-unit transaction, wait, retry (default: hybrid)')
    parser.add_argument('--poll-interval', type=float, help='Seconds between confirmation checks (default: 2)')
    parser.add_argument('--max-poll-ticks', type=int,
                        help='Give up confirmation checks after this many rounds (default: 300)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    return parser


def setup_logging(verbose=False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler("drop_minter.log"),
            logging.StreamHandler()
        ]
    )


def load_config(args) -> MintConfig:
    config = MintConfig.from_file(args.config, args.chain, key_file=args.keys)
    config = config.with_overrides(
        nft_address=args.nft,
        total=args.total,
        gas_price=args.gas_price,
        gas_limit=args.gas_limit,
        poll_interval=args.poll_interval,
        max_poll_ticks=args.max_poll_ticks,
    )
    return config.validate()


def create_minter(strategy, config):
    if strategy == 'sequential':
        from sequential_minter import SequentialMinter
        return SequentialMinter(config)
    from hybrid_minter import HybridMinter
    return HybridMinter(config)


def main(argv=None):
    """
    Main entry point for the drop minter CLI.
    Loads configuration once, then mints with every configured wallet in turn.
    """
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = load_config(args)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    print(f"Selected chain: {config.chain_name} ({config.chain_id})")
    print(f"NFT Contract: {config.nft_address}")
    print(f"Total Mint per wallet: {config.total}")
    print(f"Strategy: {args.strategy}")

    minter = create_minter(args.strategy, config)
    try:
        outcomes = minter.run()
    except KeyboardInterrupt:
        print("Interrupted by user. Transactions already sent remain valid on-chain. Exiting...")
        return 130
    except Exception as e:
        logger.critical(f"Fatal error: {e}")
        return 1

    minted = sum(outcome.units_minted for outcome in outcomes)
    print(f"\nFinal Result: {minted} NFT(s) minted across {len(outcomes)} wallet(s)")
    for outcome in outcomes:
        tally = outcome.tally.as_dict() if outcome.tally else {}
        print(f"  {outcome.address}: {outcome.status.value} {tally}")
        if outcome.tally and outcome.tally.unresolved:
            print("    Some transactions may still be pending. Check your wallet later.")

    return 0


if __name__ == "__main__":
    sys.exit(main())
