"""CLI entry point for mchk."""

import argparse
import sys

import structlog

from mchk.config import find_config_file, load_settings, write_example_config
from mchk.credentials import ChainSecretProvider, EnvSecretProvider, PromptSecretProvider
from mchk.exceptions import ConfigError, ConfigNotFoundError, MchkError
from mchk.log import configure_logging
from mchk.orchestrator import TestOrchestrator
from mchk.reporting import ConsoleReporter, SpinnerObserver, is_interactive, supports_color
from mchk.submitter import DeliverySubmitter
from mchk.verifier import DeliveryVerifier
from mchk.waiter import IntervalWaiter

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mchk",
        description="Check end-to-end mail delivery: send a probe over SMTP, find it over IMAP",
    )
    parser.add_argument("--config", help="path to configuration file")
    parser.add_argument("--debug", action="store_true", help="log protocol steps to stderr")
    parser.add_argument("--no-color", action="store_true", help="disable colored output")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.debug)

    try:
        config_path = find_config_file(args.config)
    except ConfigNotFoundError:
        print("No config file found.")
        if args.config is None:
            created = write_example_config()
            print(f"Example config file created at {created}")
        return 1

    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        print(e, file=sys.stderr)
        return 1

    if settings.debug and not args.debug:
        configure_logging(True)
    logger.debug("Config loaded", path=str(config_path), tests=len(settings.tests))

    interactive = is_interactive(sys.stdout)
    reporter = ConsoleReporter(
        sys.stdout,
        color=supports_color(sys.stdout) and not args.no_color,
        interactive=interactive,
    )
    orchestrator = TestOrchestrator(
        submitter=DeliverySubmitter(),
        verifier=DeliveryVerifier(),
        waiter=IntervalWaiter(),
        reporter=reporter,
        secrets=ChainSecretProvider([EnvSecretProvider(), PromptSecretProvider()]),
        wait_observer=SpinnerObserver(sys.stdout) if interactive else None,
    )

    try:
        result = orchestrator.run(settings.run_config())
    except MchkError as e:
        print(e, file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130

    return 1 if result.aborted else 0


if __name__ == "__main__":
    sys.exit(main())
