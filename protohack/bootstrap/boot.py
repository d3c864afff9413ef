from protohack.bootstrap.config.loader import get_cli_args
from protohack.bootstrap.deps import get_cp
from protohack.core.helpers.utils import setup_signal_handler, setup_logging
from protohack.core.models.errors import BindFailure


def main():
    cli = get_cli_args()
    setup_logging(cli.log_level)

    controlplane = get_cp()
    loop = controlplane.loop

    try:
        with setup_signal_handler(loop) as stop_event:
            loop.run_until_complete(controlplane.start(stop_event))
    except BindFailure as ex:
        raise SystemExit(f"[server] {ex}")
    except KeyboardInterrupt:
        pass
    finally:
        try:
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.run_until_complete(loop.shutdown_default_executor())
        finally:
            loop.close()


if __name__ == "__main__":
    main()
