"""
Command-line interface for kmsenv.

This module wires configuration, the gateway and the workflow together
and provides the user-facing commands:
- init
- add
- decrypt
- show
- help

Command output (export lines, show listing) goes to stdout. Everything
else goes to stderr so that `eval "$(kmsenv decrypt)"` stays clean.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, TextIO

from .config import SUPPORTED_BACKENDS, TOOL_VERSION, GatewayConfig, resolve_config
from .errors import KmsEnvError, ValidationError
from .gateway import KeyManagementGateway, create_gateway
from .utils import split_assignment
from .workflow import EncryptionWorkflow


# ---------------------------------------------------------------------------
# Color output helpers
# ---------------------------------------------------------------------------


class Colors:
    """ANSI color codes for terminal output."""
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    RESET = "\033[0m"
    BOLD = "\033[1m"


def colored(text: str, color: str, stream: Optional[TextIO] = None) -> str:
    """Return colored text if the target stream (stderr by default) is a terminal."""
    stream = stream or sys.stderr
    if not stream.isatty() or os.getenv("NO_COLOR"):
        return text
    return f"{color}{text}{Colors.RESET}"


def print_error(msg: str) -> None:
    """Print error message to stderr."""
    print(colored(f"✗ Error: {msg}", Colors.RED), file=sys.stderr)


def print_success(msg: str) -> None:
    print(colored(f"✓ {msg}", Colors.GREEN), file=sys.stderr)


def print_warning(msg: str) -> None:
    print(colored(f"⚠ Warning: {msg}", Colors.YELLOW), file=sys.stderr)


def print_info(msg: str) -> None:
    print(colored(f"ℹ {msg}", Colors.CYAN), file=sys.stderr)


def configure_logging(verbose: bool, quiet: bool) -> None:
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stderr,
    )


# ---------------------------------------------------------------------------
# CLI context
# ---------------------------------------------------------------------------


class CLIContext:
    """Shared context for CLI commands."""

    def __init__(
        self,
        config_path: Optional[str],
        overrides: dict,
        verbose: bool,
        quiet: bool,
        gateway: Optional[KeyManagementGateway] = None,
    ):
        self.config_path = config_path
        self.overrides = overrides
        self.verbose = verbose
        self.quiet = quiet

        # Lazy-loaded
        self._config: Optional[GatewayConfig] = None
        self._gateway = gateway
        self._workflow: Optional[EncryptionWorkflow] = None

    @property
    def config(self) -> GatewayConfig:
        """Resolve configuration lazily."""
        if self._config is None:
            self._config = resolve_config(self.config_path, self.overrides)
        return self._config

    @property
    def gateway(self) -> KeyManagementGateway:
        """Create the gateway lazily."""
        if self._gateway is None:
            self._gateway = create_gateway(self.config)
        return self._gateway

    @property
    def workflow(self) -> EncryptionWorkflow:
        if self._workflow is None:
            self._workflow = EncryptionWorkflow(self.gateway)
        return self._workflow

    def log_verbose(self, msg: str) -> None:
        """Log message if verbose."""
        if self.verbose:
            print(colored(f"  → {msg}", Colors.BLUE), file=sys.stderr)


# ---------------------------------------------------------------------------
# Command implementations
# ---------------------------------------------------------------------------


def cmd_init(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    Initialize an env file with the provided CMK id.
    """
    path = Path(args.file).resolve() if args.file else None

    if path is not None and path.exists() and not ctx.quiet:
        print_warning(f"Overwriting existing env file {path}")

    # init never talks to the key-management service
    EncryptionWorkflow().init(args.key_id, path)

    if not ctx.quiet:
        print_success(f"Initialized {path} with key {args.key_id}")
    return 0


def cmd_add(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    Encrypt values and add them to the env file.
    """
    path = Path(args.file).resolve() if args.file else None

    if path is None:
        raise ValidationError("Must provide file")
    if not args.entries:
        raise ValidationError("Must provide entries to encrypt")
    for token in args.entries:
        split_assignment(token)

    ctx.log_verbose(f"Encrypting {len(args.entries)} value(s) into {path}")
    env_file = ctx.workflow.add(path, args.entries)

    if not ctx.quiet:
        names = ", ".join(token.partition("=")[0] for token in args.entries)
        print_success(f"Added {names} to {path} ({len(env_file)} entries)")
    return 0


def cmd_decrypt(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    Print export statements for SECURE: variables in the environment.
    """
    lines = ctx.workflow.decrypt(dict(os.environ))

    ctx.log_verbose(f"Decrypted {len(lines)} variable(s)")
    if not lines and not ctx.quiet:
        print_info("No encrypted variables found in the environment")
    for line in lines:
        print(line)
    return 0


def cmd_show(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    Print the env file with every value decrypted.
    """
    path = Path(args.file).resolve() if args.file else None

    if path is None:
        raise ValidationError("Must provide file to show")

    if not ctx.quiet:
        print_warning("Output contains decrypted secrets; use for debugging only")

    for line in ctx.workflow.show(path):
        print(line)
    return 0


def cmd_help(ctx: Optional[CLIContext], args: argparse.Namespace) -> int:
    """
    Show help message.
    """
    help_text = f"""
{colored('kmsenv', Colors.BOLD, sys.stdout)} — keep KMS-encrypted environment variables in version control

{colored('USAGE:', Colors.CYAN, sys.stdout)}
  kmsenv [options] <command> [args...]

{colored('COMMANDS:', Colors.CYAN, sys.stdout)}
  init KEY_ID FILE          Initialize an env file with the provided CMK id
                            (overwrites FILE if it exists)
  add FILE NAME=VALUE...    Encrypt values and add them to the env file
  decrypt                   Print bash exports for SECURE: variables in the
                            current environment; use with eval
  show FILE                 Show the env file with decrypted values
                            (debugging only: prints secrets)
  help                      Show this help message

{colored('GLOBAL OPTIONS:', Colors.CYAN, sys.stdout)}
  -k, --access-key-id ID    AWS access key id      Env: $AWS_ACCESS_KEY_ID
  -s, --secret-access-key S AWS secret access key  Env: $AWS_SECRET_ACCESS_KEY
  -r, --region REGION       AWS region             Env: $AWS_REGION
  -p, --profile NAME        AWS credential profile Env: $AWS_PROFILE
  -c, --config PATH         Config file (default: .kmsenv.yml if present)
                                                   Env: $KMSENV_CONFIG
  -b, --backend NAME        Gateway backend: {', '.join(SUPPORTED_BACKENDS)}
                                                   Env: $KMSENV_BACKEND
  -v, --verbose             Enable verbose output
  -q, --quiet               Suppress non-error output
  -V, --version             Show version and exit
  -h, --help                Show this help message and exit

{colored('ENVIRONMENT:', Colors.CYAN, sys.stdout)}
  ENCRYPTION_KEY            Secret used by the local backend

{colored('EXAMPLES:', Colors.CYAN, sys.stdout)}
  kmsenv init alias/app-secrets .env.secure
  kmsenv add .env.secure DB_PASS=secret API_TOKEN=abc
  kmsenv show .env.secure
  eval "$(kmsenv decrypt)"

{colored('VERSION:', Colors.CYAN, sys.stdout)}
  {TOOL_VERSION}
"""
    print(help_text)
    return 0


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="kmsenv",
        description="Encrypt environment variables with a KMS master key",
        add_help=False,
    )

    # Global options
    parser.add_argument("-k", "--access-key-id", help="AWS access key id")
    parser.add_argument("-s", "--secret-access-key", help="AWS secret access key")
    parser.add_argument("-r", "--region", help="AWS region")
    parser.add_argument("-p", "--profile", help="AWS credential profile to use")
    parser.add_argument("-c", "--config", help="Path to config file")
    parser.add_argument(
        "-b", "--backend",
        choices=SUPPORTED_BACKENDS,
        help="Gateway backend",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress non-error output",
    )
    parser.add_argument(
        "-V", "--version",
        action="version",
        version=f"%(prog)s {TOOL_VERSION}",
    )
    parser.add_argument(
        "-h", "--help",
        action="store_true",
        help="Show help message",
    )

    # Subcommands
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    init_parser = subparsers.add_parser("init", help="Initialize an env file with a CMK id")
    init_parser.add_argument("key_id", nargs="?", default="", help="KMS key id, ARN or alias")
    init_parser.add_argument("file", nargs="?", default="", help="Env file to create")

    add_parser = subparsers.add_parser("add", help="Encrypt values and add them to the env file")
    add_parser.add_argument("file", nargs="?", default="", help="Env file to update")
    add_parser.add_argument("entries", nargs="*", help="NAME=VALUE pairs to encrypt")

    subparsers.add_parser("decrypt", help="Print exports for encrypted environment variables")

    show_parser = subparsers.add_parser("show", help="Show the env file with decrypted values")
    show_parser.add_argument("file", nargs="?", default="", help="Env file to show")

    subparsers.add_parser("help", help="Show help message")

    return parser


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def main(
    argv: Optional[List[str]] = None,
    gateway: Optional[KeyManagementGateway] = None,
) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Show help if requested or no command
    if args.help or not args.command:
        return cmd_help(None, args)

    configure_logging(args.verbose, args.quiet)

    ctx = CLIContext(
        config_path=args.config,
        overrides={
            "backend": args.backend,
            "region": args.region,
            "profile": args.profile,
            "access_key_id": args.access_key_id,
            "secret_access_key": args.secret_access_key,
        },
        verbose=args.verbose,
        quiet=args.quiet,
        gateway=gateway,
    )

    # Dispatch to command
    commands = {
        "init": cmd_init,
        "add": cmd_add,
        "decrypt": cmd_decrypt,
        "show": cmd_show,
        "help": cmd_help,
    }

    cmd_func = commands.get(args.command)
    if not cmd_func:
        print_error(f"Unknown command: {args.command}")
        return 1

    try:
        return cmd_func(ctx, args)
    except KeyboardInterrupt:
        print_error("Interrupted")
        return 130
    except KmsEnvError as e:
        print_error(str(e))
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
