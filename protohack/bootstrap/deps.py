import json
from functools import lru_cache
from typing import Any

from pydantic import ValidationError

from protohack.bootstrap.config.loader import get_cli_args
from protohack.bootstrap.config.settings import ProtohackConfig
from protohack.core.controlplane import ControlPlane
from protohack.core.ports.handler import HandlerFactory
from protohack.core.transport.addr import parse_address
from protohack.solutions.means_to_an_end import MeansToAnEndHandler
from protohack.solutions.prime_time import PrimeTimeHandler


SOLUTIONS: dict[str, HandlerFactory] = {
    "prime-time": PrimeTimeHandler,
    "means-to-an-end": MeansToAnEndHandler,
}


@lru_cache
def get_cp() -> ControlPlane:
    config = get_config()

    return ControlPlane(
        config=config,
        handler_factory=get_handler_factory(config.solution),
    )


def get_handler_factory(solution: str) -> HandlerFactory:
    try:
        return SOLUTIONS[solution]
    except KeyError:
        available = ", ".join(sorted(SOLUTIONS))
        raise SystemExit(
            f"[config] Unknown solution '{solution}'. Available: {available}"
        ) from None


def get_overrides() -> dict[str, Any]:
    cli = get_cli_args()
    overrides: dict[str, Any] = {}

    if cli.solution:
        overrides["solution"] = cli.solution

    if cli.bind:
        try:
            host, port = parse_address(cli.bind)
        except ValueError as ex:
            raise SystemExit(f"[config] --bind: {ex}")
        overrides["server"] = {"host": host, "port": port}

    return overrides


@lru_cache
def get_config() -> ProtohackConfig:
    try:
        return ProtohackConfig(**get_overrides())
    except FileNotFoundError as ex:
        raise SystemExit(f"Provide a correct configuration file path: {ex}")
    except ValidationError as ex:
        msg = ["Configuration validation failed:"]
        errs = json.loads(ex.json())
        for err in errs:
            msg.append(f"  {'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}")
        raise SystemExit("\n".join(msg))
