"""
CLI command implementations.

agent:
    signbridge agent SHARED_DIR [CERT]
    Runs until interrupted. CERT ending in .pfx is a certificate file,
    anything else a certificate store name; omit it for automatic selection.

handoff:
    signbridge handoff -in FILE -out FILE [--shared DIR]
    signbridge-osslsigncode ... -in FILE -out FILE ...
    Accepts an osslsigncode command line, ignores every option except -in
    and -out, and delegates the signing to the agent. The agent decides
    how to sign.

Exit statuses are listed in ExitCode.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from ..config import ConfigurationError, RetrieveMode, SignBridgeSettings
from ..execution.errors import SignToolNotFoundError
from ..handoff.agent import SigningAgent
from ..handoff.client import HandoffClient
from ..handoff.errors import HandoffError, HandoffPlacementError, SharedDirectoryError
from ..handoff.layout import INPUT_FOLDER, SharedLayout
from ..logging_setup import configure_logging
from ..watchfolders.errors import DirectoryListingError
from .errors import CLIError, ExitCode

logger = logging.getLogger(__name__)


def _directory_exit_code(error: SharedDirectoryError) -> ExitCode:
    return ExitCode.INPUT_DIR if error.role == INPUT_FOLDER else ExitCode.OUTPUT_DIR


def _load_settings(**overrides) -> SignBridgeSettings:
    try:
        return SignBridgeSettings.from_env(**overrides)
    except ConfigurationError as e:
        raise CLIError(str(e), ExitCode.USAGE) from e


# -----------------------------------------------------------------------------
# agent
# -----------------------------------------------------------------------------

def run_agent(args: argparse.Namespace) -> int:
    """
    Run the signing agent until interrupted.

    Returns:
        Exit code
    """
    settings = _load_settings(
        shared_dir=args.shared_dir,
        certificate=args.cert,
        sign_timeout_ms=args.timeout_ms,
        signtool_path=args.signtool,
        timestamp_url=args.timestamp_url,
        poll_interval=args.poll_interval,
    )

    logger.info("Windows signing service started.")

    try:
        agent = SigningAgent.from_settings(settings)
    except SignToolNotFoundError as e:
        logger.error(f"ERROR: {e}")
        return ExitCode.SIGNTOOL_MISSING

    try:
        asyncio.run(agent.run())
    except SharedDirectoryError as e:
        logger.error(f"ERROR: {e}")
        return _directory_exit_code(e)
    except DirectoryListingError as e:
        logger.error(f"ERROR: {e}")
        return ExitCode.WATCH_FAILED
    except KeyboardInterrupt:
        logger.info("Signing service stopped.")

    return ExitCode.OK


# -----------------------------------------------------------------------------
# handoff (osslsigncode shim)
# -----------------------------------------------------------------------------

def _add_handoff_arguments(parser: argparse.ArgumentParser, *verbose_flags: str) -> None:
    parser.add_argument("-in", dest="in_file", metavar="FILE", help="Unsigned input file")
    parser.add_argument("-out", dest="out_file", metavar="FILE", help="Signed output file")
    parser.add_argument(
        "--shared",
        dest="shared_dir",
        metavar="DIR",
        help="Shared directory (default: $SHARED_DIR)",
    )
    parser.add_argument(
        "--timeout-ms",
        type=int,
        metavar="N",
        help="Give up waiting after N milliseconds (default: wait forever)",
    )
    parser.add_argument(
        "--retrieve-mode",
        choices=[m.value for m in RetrieveMode],
        help="How to take the signed file out of the shared folder (default: copy)",
    )
    parser.add_argument(*(verbose_flags or ("--verbose",)), dest="verbose", action="store_true")


def parse_handoff_args(argv: List[str]) -> argparse.Namespace:
    """
    Parse an osslsigncode-style command line.

    Unknown options (-pkcs12, -pass, -n, -t, -h ...) are ignored. There is
    no -h/--help and no -v here, since osslsigncode uses -h for the digest
    and single-dash words like -verbose would collide with -v.
    """
    parser = argparse.ArgumentParser(
        prog="signbridge-osslsigncode",
        description="Delegate Windows code signing to the signing host",
        allow_abbrev=False,
        add_help=False,
    )
    _add_handoff_arguments(parser)
    args, ignored = parser.parse_known_args(argv)
    if ignored:
        logger.debug(f"[Handoff] Ignoring signing options: {' '.join(ignored)}")
    return args


def run_handoff(args: argparse.Namespace) -> int:
    """
    Hand one file off for signing and retrieve the result.

    Returns:
        Exit code
    """
    if not args.in_file or not args.out_file:
        raise CLIError("Both -in and -out are required", ExitCode.USAGE)

    settings = _load_settings(
        shared_dir=args.shared_dir,
        handoff_timeout_ms=args.timeout_ms,
        retrieve_mode=args.retrieve_mode,
    )

    layout = SharedLayout(settings.shared_dir)
    try:
        layout.verify()
    except SharedDirectoryError as e:
        logger.error(f"ERROR: {e}")
        return _directory_exit_code(e)

    client = HandoffClient.from_settings(settings)

    async def _sign():
        work = client.sign_to(args.in_file, args.out_file, settings.retrieve_mode)
        if settings.handoff_timeout_ms is None:
            return await work
        return await asyncio.wait_for(work, timeout=settings.handoff_timeout_ms / 1000)

    try:
        asyncio.run(_sign())
    except HandoffPlacementError as e:
        logger.error(f"ERROR: {e}")
        return ExitCode.HANDOFF_FAILED
    except asyncio.TimeoutError:
        logger.error(
            f"ERROR: no signed file after {settings.handoff_timeout_ms} ms: {args.in_file}"
        )
        return ExitCode.HANDOFF_FAILED
    except DirectoryListingError as e:
        logger.error(f"ERROR: {e}")
        return ExitCode.WATCH_FAILED
    except (HandoffError, OSError) as e:
        logger.error(f"ERROR: {e}")
        return ExitCode.HANDOFF_FAILED

    logger.info("Done")
    return ExitCode.OK


# -----------------------------------------------------------------------------
# Entry points
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="signbridge",
        description="Cross-host code signing through a shared directory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
        epilog="""
Shared directory layout:
  shared/
  ├── in/     # build host drops unsigned files here
  └── out/    # signing host puts signed files here

Exit statuses:
  1 usage, 2 signing tool missing, 3 input dir, 4 output dir,
  5 handoff failed, 6 watched directory lost
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    agent = subparsers.add_parser("agent", help="Run the signing service")
    agent.add_argument("shared_dir", nargs="?", help="Shared directory (default: $SHARED_DIR)")
    agent.add_argument(
        "cert",
        nargs="?",
        help="Certificate store name, or .pfx file (default: automatic selection)",
    )
    agent.add_argument("--timeout-ms", type=int, metavar="N", help="Signing tool timeout")
    agent.add_argument("--signtool", metavar="PATH", help="Signing tool binary")
    agent.add_argument("--timestamp-url", metavar="URL", help="Timestamp authority")
    agent.add_argument("--poll-interval", type=float, metavar="S", help="Seconds between scans")
    agent.add_argument("-v", "--verbose", action="store_true")
    agent.set_defaults(handler=run_agent)

    handoff = subparsers.add_parser("handoff", help="Send one file for signing")
    _add_handoff_arguments(handoff, "-v", "--verbose")
    handoff.set_defaults(handler=run_handoff)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point for signbridge.

    Returns:
        Exit code
    """
    parser = build_parser()
    args, extras = parser.parse_known_args(argv)
    if extras:
        if args.command != "handoff":
            parser.error(f"unrecognized arguments: {' '.join(extras)}")
        logger.debug(f"[Handoff] Ignoring signing options: {' '.join(extras)}")
    configure_logging(args.verbose)

    try:
        return int(args.handler(args))
    except CLIError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return int(e.exit_code)


def osslsigncode_main(argv: Optional[List[str]] = None) -> int:
    """Entry point used as the external build tool's signing tool."""
    args = parse_handoff_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.verbose)

    try:
        return int(run_handoff(args))
    except CLIError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return int(e.exit_code)


if __name__ == "__main__":
    sys.exit(main())
