"""
Entry point wiring all components.
"""

from __future__ import annotations

import asyncio
import json
import signal
import sys

from lpkeeper.app import build_keeper
from lpkeeper.config.config import Settings
from lpkeeper.errors import ConfigError
from lpkeeper.infra.logging_cfg import build_logger
from lpkeeper.monitoring.metrics import start_metrics_server


async def main() -> int:
    cfg = Settings.load()
    log = build_logger("lpkeeper", file_path=cfg.log_file)

    keeper = build_keeper(cfg)
    if start_metrics_server(keeper.metrics, cfg.metrics_port):
        log.info(json.dumps({"event": "metrics_server_started", "port": cfg.metrics_port}))

    try:
        await keeper.initialize()
    except Exception as exc:
        log.error(json.dumps({"event": "preflight_failed", "err": str(exc), "err_type": type(exc).__name__}))
        await keeper.shutdown("preflight_failed")
        return 1

    loop = asyncio.get_running_loop()
    run_task = asyncio.create_task(keeper.run())
    reason = "normal"

    def stop_all() -> None:
        # Stop dispatching new triggers; in-flight evaluations drain in shutdown().
        keeper.trigger.stop()
        if not run_task.done():
            run_task.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_all)
        except NotImplementedError:
            pass

    try:
        await run_task
    except asyncio.CancelledError:
        log.info(json.dumps({"event": "shutdown_signal"}))
    except Exception as exc:
        reason = "crashed"
        log.exception(json.dumps({"event": "keeper_crashed", "err": str(exc)}))
    finally:
        await keeper.shutdown(reason)
    return 0 if reason == "normal" else 1


def cli() -> None:
    try:
        code = asyncio.run(main())
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        code = 2
    except KeyboardInterrupt:
        print("\nKeeper stopped by user")
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    cli()
