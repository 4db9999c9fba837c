"""Example host program for podinformer.

Startup order: config -> logging -> K8s client -> informer.

Two modes, selected by configuration:
  timed  -- run one informer that logs every snapshot, stop it after
            ``interval`` seconds or on SIGINT/SIGTERM.
  churn  -- create/run/stop informers in a tight loop (``churn_limit`` cycles
            per round, one second apart) to surface leaked watch streams or
            tasks.  Runs until signalled.
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from podinformer.config import load_config
from podinformer.exceptions import FeedError
from podinformer.informer import InformerOptions, PodInformer
from podinformer.models.config import AppConfig
from podinformer.models.pods import InformerState, PodRecord
from podinformer.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

_CHURN_PAUSE_SECONDS = 1.0


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


def make_pod_logger(log: structlog.stdlib.BoundLogger) -> Callable[[list[PodRecord]], None]:
    """Build a callback that logs the snapshot size and then every pod."""

    def log_pods(pods: list[PodRecord]) -> None:
        total = len(pods)
        log.info("pods updated", count=total)
        for index, pod in enumerate(pods):
            log.info(
                "pod",
                index=index,
                total=total,
                namespace=pod.namespace,
                pod=pod.name,
                ip=pod.ip,
                ready=pod.ready,
            )

    return log_pods


def build_options(config: AppConfig, api: Any, log: structlog.stdlib.BoundLogger) -> InformerOptions:
    return InformerOptions(
        api=api,
        namespace=config.informer.namespace,
        label_selector=config.informer.label_selector,
        on_update=make_pod_logger(log),
        logger=get_logger("informer"),
        debug_log=config.informer.debug_log,
        resync_period=config.informer.resync_period,
    )


# ---------------------------------------------------------------------------
# Kubernetes client
# ---------------------------------------------------------------------------


async def _start_k8s_client(config: AppConfig, log: structlog.stdlib.BoundLogger) -> Any:
    """Return a kubernetes-asyncio ApiClient from in-cluster config or kubeconfig."""
    log.debug("starting k8s client")
    try:
        from kubernetes_asyncio import client as k8s_client
        from kubernetes_asyncio import config as k8s_config

        try:
            # load_incluster_config() is synchronous in kubernetes-asyncio
            k8s_config.load_incluster_config()
            log.info("k8s client configured from in-cluster service account")
        except k8s_config.ConfigException:
            await k8s_config.load_kube_config(config_file=config.kubeconfig or None)
            log.info("k8s client configured from kubeconfig", kubeconfig=config.kubeconfig or "~/.kube/config")

        return k8s_client.ApiClient()
    except Exception as exc:
        raise _ComponentError("k8s_client", exc) from exc


# ---------------------------------------------------------------------------
# Modes
# ---------------------------------------------------------------------------


async def _wait_for_shutdown(shutdown: asyncio.Event, interval: float, log: structlog.stdlib.BoundLogger) -> None:
    log.info("time limit begin", interval=interval)
    try:
        await asyncio.wait_for(shutdown.wait(), timeout=interval)
        log.info("shutdown requested")
    except TimeoutError:
        log.info("time limit end", interval=interval)


async def run_timed(
    options: InformerOptions,
    interval: float,
    shutdown: asyncio.Event,
    log: structlog.stdlib.BoundLogger,
) -> None:
    """Run one informer until *interval* elapses or *shutdown* is set."""
    informer = PodInformer(options)
    run_task = asyncio.create_task(informer.run(), name="podinformer-run")
    limit_task = asyncio.create_task(_wait_for_shutdown(shutdown, interval, log), name="time-limit")

    done, _ = await asyncio.wait({run_task, limit_task}, return_when=asyncio.FIRST_COMPLETED)
    if run_task in done:
        limit_task.cancel()
        await asyncio.gather(limit_task, return_exceptions=True)
    else:
        informer.stop()
    await run_task
    log.info("informer run finished")


async def _run_once(options: InformerOptions, log: structlog.stdlib.BoundLogger) -> None:
    informer = PodInformer(options)
    run_task = asyncio.create_task(informer.run(), name="podinformer-run")
    # Let run() enter RUNNING before stopping it.
    await asyncio.sleep(0)
    # run() may already have failed and left the informer STOPPED.
    if informer.state is InformerState.RUNNING:
        informer.stop()
    try:
        await run_task
    except FeedError as exc:
        log.warning("informer run error", error=str(exc))


async def run_churn(
    options_factory: Callable[[], InformerOptions],
    limit: int,
    shutdown: asyncio.Event,
    log: structlog.stdlib.BoundLogger,
) -> int:
    """Create/run/stop informers *limit* times per round until *shutdown* is set.

    Returns the total number of cycles executed.
    """
    executed = 0
    while not shutdown.is_set():
        for _ in range(limit):
            if shutdown.is_set():
                break
            await _run_once(options_factory(), log)
            executed += 1
        log.info("executed", cycles=executed, tasks=len(asyncio.all_tasks()))
        try:
            await asyncio.wait_for(shutdown.wait(), timeout=_CHURN_PAUSE_SECONDS)
        except TimeoutError:
            pass
    return executed


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Load config, connect to the cluster and run the selected mode."""
    config = load_config()
    setup_logging(config.log.level, config.log.format)
    log = get_logger("app")
    log.info("podinformer starting", version=_podinformer_version())

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown.set)

    try:
        api_client = await _start_k8s_client(config, log)
    except _ComponentError as exc:
        log.critical("fatal startup error", component=exc.component, error=str(exc.cause))
        raise SystemExit(1) from exc

    from kubernetes_asyncio import client as k8s_client

    api = k8s_client.CoreV1Api(api_client)
    try:
        if config.churn_limit > 0:
            await run_churn(lambda: build_options(config, api, log), config.churn_limit, shutdown, log)
        else:
            await run_timed(build_options(config, api, log), config.interval, shutdown, log)
    except FeedError as exc:
        log.error("informer run error", error=str(exc))
        raise SystemExit(1) from exc
    finally:
        await api_client.close()
        log.info("podinformer stopped")


def _podinformer_version() -> str:
    from podinformer import __version__

    return __version__


def cli() -> None:
    """Console-script entry point."""
    asyncio.run(main())
