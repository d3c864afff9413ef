import argparse
import os
from functools import lru_cache
from pathlib import Path


@lru_cache
def get_cli_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="protohack",
        description=(
            "Start a protohack server.\n\n"
            "protohack serves line- or fixed-size-framed request/response "
            "protocols over TCP, one concurrent loop per connection."
        ),
        formatter_class=argparse.RawTextHelpFormatter
    )

    parser.add_argument(
        "-c", "--config",
        type=str,
        help="Path to a protohack configuration file"
    )

    parser.add_argument(
        "-s", "--solution",
        type=str,
        help=(
            "Protocol to serve (overrides the configuration file).\n"
            "Available: prime-time, means-to-an-end."
        ),
    )

    parser.add_argument(
        "-b", "--bind",
        type=str,
        metavar="HOST:PORT",
        help=(
            "Address to listen on (overrides the configuration file).\n\n"
            "Example:\n"
            "  --bind 0.0.0.0:50000\n"
            "  --bind [::1]:50000"
        ),
    )

    parser.add_argument(
        "-l", "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help=(
            "Logging verbosity for the server.\n"
            "Choose among: DEBUG, INFO, WARNING, ERROR, CRITICAL.\n\n"
            "DEBUG    → every connection and request, useful for tracing.\n"
            "INFO     → startup, shutdown and rejected requests (default).\n"
            "WARNING  → only I/O failures, warnings and errors.\n"
            "ERROR    → only errors.\n"
            "CRITICAL → only critical failures.\n\n"
            "Example:\n"
            "  --log-level DEBUG"
        ),
    )

    return parser.parse_args()


@lru_cache
def get_configfile() -> Path | None:
    args = get_cli_args()

    # Priority: CLI > ENV > default file in current working directory
    raw = args.config or os.getenv("PROTOHACK_CONFIG")

    if raw is None:
        file = Path.cwd() / "protohack.yaml"
        # The default file is optional, built-in defaults apply without it.
        return file if file.is_file() else None

    file = Path(raw)
    if not file.is_file():
        raise SystemExit(
            f"[config] Configuration file not found: '{file}'.\n"
            "  - Use --config <file.yaml>\n"
            "  - Or set the PROTOHACK_CONFIG environment variable\n"
            "  - Or place a 'protohack.yaml' file in the current working directory."
        )

    return file
