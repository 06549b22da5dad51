"""Server runner: startup ordering, listeners, and signal-driven shutdown.

Startup:
1. Decide the mode. Merged mode is used when the HTTP port equals the
   health port; otherwise a health-only listener starts first so probes
   answer while the application initializes.
2. Await ``app.on_start()``. On failure the health flag never turns on.
3. Mark healthy, fetch routes, build the ASGI app, start the main listener.
4. Mark ready.

With no routes the process runs in background mode: merged mode serves the
health endpoints on the HTTP port, dual-port mode keeps only the health
listener.

Shutdown (SIGINT/SIGTERM or ``request_shutdown()``):
1. Mark not ready.
2. Drain the main listener, then the health listener, each bounded by
   ``shutdown_timeout``; listeners that overrun are force-closed.
3. Await ``app.on_stop()``. Errors here are logged, never raised.

Listeners are ``uvicorn.Server`` instances running on sockets bound here, so
bind failures surface as ``ListenerError`` instead of exiting the process.
"""

import asyncio
import contextlib
import signal
import socket
from collections.abc import Iterator
from dataclasses import dataclass

import uvicorn
from starlette.types import ASGIApp

from bedrock.app import App, build_application, build_health_application, check_route_conflicts
from bedrock.config import BaseConfig
from bedrock.errors import ListenerError, RouteConflictError, StartupError
from bedrock.health import HealthStatus
from bedrock.logging import configure_logging, get_logger, use_json_format
from bedrock.middleware.cors import CORSConfig, default_cors_config

logger = get_logger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_SHUTDOWN_TIMEOUT = 30.0
BACKGROUND_SHUTDOWN_TIMEOUT = 5.0
STARTUP_POLL_INTERVAL = 0.01

MAIN_LISTENER = "http"
HEALTH_LISTENER = "health"


class Listener(uvicorn.Server):
    """uvicorn server that leaves signal handling to the Runner."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


@dataclass
class RunningListener:
    name: str
    server: Listener
    task: asyncio.Task
    port: int


def bind_socket(host: str, port: int) -> socket.socket:
    """Bind a listening TCP socket.

    Raises:
        ListenerError: The address cannot be bound.
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError as e:
        sock.close()
        raise ListenerError(f"failed to bind {host}:{port}: {e}") from e
    sock.set_inheritable(True)
    return sock


class Runner:
    """Runs an App until a termination signal arrives.

    Args:
        app: The application.
        cfg: Shared settings; ports come from the Nomad-aware getters.
        cors: CORS settings for application routes.
        host: Interface to bind.
        shutdown_timeout: Per-listener drain limit in seconds.
        handle_signals: Install SIGINT/SIGTERM handlers on the running loop.
    """

    def __init__(
        self,
        app: App,
        cfg: BaseConfig,
        cors: CORSConfig | None = None,
        host: str = DEFAULT_HOST,
        shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT,
        handle_signals: bool = True,
    ):
        self.app = app
        self.cfg = cfg
        self.cors = cors if cors is not None else default_cors_config()
        self.host = host
        self.shutdown_timeout = shutdown_timeout
        self.handle_signals = handle_signals
        self.status = HealthStatus()
        self.listeners: dict[str, RunningListener] = {}
        self._shutdown = asyncio.Event()

    def request_shutdown(self) -> None:
        """Begin graceful shutdown; safe to call more than once."""
        if not self._shutdown.is_set():
            logger.info("shutdown_requested")
        self._shutdown.set()

    def port(self, name: str) -> int:
        """Actual bound port of a running listener ("http" or "health")."""
        return self.listeners[name].port

    async def serve(self) -> None:
        """Start up, wait for shutdown, then shut down.

        Raises:
            StartupError: ``app.on_start()`` failed.
            RouteConflictError: Merged mode and a route uses a health path.
            ListenerError: A listener could not be bound or started.
        """
        loop = asyncio.get_running_loop()
        installed = self._install_signal_handlers(loop) if self.handle_signals else []
        try:
            drain_timeout = await self._startup()
            await self._shutdown.wait()
            await self._shutdown_sequence(drain_timeout)
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)

    async def _startup(self) -> float:
        http_port = self.cfg.get_http_port()
        health_port = self.cfg.get_health_port()
        merged = http_port == health_port
        logger.info(
            "server_starting",
            http_port=http_port,
            health_port=health_port,
            merged=merged,
        )

        if not merged:
            await self._start_listener(
                HEALTH_LISTENER, build_health_application(self.status), health_port
            )

        try:
            await self.app.on_start()
        except Exception as e:
            logger.error("application_start_failed", error=str(e))
            await self._stop_listeners(self.shutdown_timeout)
            raise StartupError(f"application start failed: {e}") from e

        self.status.set_healthy(True)
        logger.info("application_started")

        routes = list(self.app.routes())
        if not routes:
            if merged:
                await self._start_or_abort(
                    MAIN_LISTENER, build_health_application(self.status), http_port
                )
            logger.info("background_mode", merged=merged)
            self.status.set_ready(True)
            return min(self.shutdown_timeout, BACKGROUND_SHUTDOWN_TIMEOUT)

        if merged:
            try:
                check_route_conflicts(routes)
            except RouteConflictError as e:
                logger.error("route_conflict", path=e.path)
                await self._stop_app()
                raise

        asgi_app = build_application(
            routes,
            cors=self.cors,
            health=self.status if merged else None,
        )
        await self._start_or_abort(MAIN_LISTENER, asgi_app, http_port)

        self.status.set_ready(True)
        logger.info("server_ready", routes=len(routes))
        return self.shutdown_timeout

    async def _start_or_abort(self, name: str, asgi_app: ASGIApp, port: int) -> None:
        try:
            await self._start_listener(name, asgi_app, port)
        except ListenerError:
            self.status.set_ready(False)
            await self._stop_listeners(self.shutdown_timeout)
            await self._stop_app()
            raise

    async def _start_listener(self, name: str, asgi_app: ASGIApp, port: int) -> None:
        sock = bind_socket(self.host, port)
        config = uvicorn.Config(
            asgi_app,
            lifespan="off",
            interface="asgi3",
            log_config=None,
            timeout_graceful_shutdown=int(self.shutdown_timeout) or None,
        )
        server = Listener(config)
        task = asyncio.create_task(server.serve(sockets=[sock]), name=f"bedrock-{name}")

        while not server.started:
            if task.done():
                sock.close()
                error = None if task.cancelled() else task.exception()
                raise ListenerError(f"{name} listener failed to start: {error}")
            await asyncio.sleep(STARTUP_POLL_INTERVAL)

        bound_port = sock.getsockname()[1]
        self.listeners[name] = RunningListener(name, server, task, bound_port)
        logger.info("listener_started", listener=name, host=self.host, port=bound_port)

    async def _shutdown_sequence(self, drain_timeout: float) -> None:
        self.status.set_ready(False)
        logger.info("shutting_down")
        await self._stop_listeners(drain_timeout)
        await self._stop_app()
        logger.info("shutdown_complete")

    async def _stop_listeners(self, timeout: float) -> None:
        for name in (MAIN_LISTENER, HEALTH_LISTENER):
            listener = self.listeners.pop(name, None)
            if listener is not None:
                await self._stop_listener(listener, timeout)

    async def _stop_listener(self, listener: RunningListener, timeout: float) -> None:
        listener.server.should_exit = True
        try:
            await asyncio.wait_for(asyncio.shield(listener.task), timeout)
        except TimeoutError:
            logger.error("listener_drain_timeout", listener=listener.name, timeout=timeout)
            listener.server.force_exit = True
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(asyncio.shield(listener.task), timeout)
            if not listener.task.done():
                listener.task.cancel()
        except Exception as e:
            logger.error("listener_shutdown_failed", listener=listener.name, error=str(e))
        else:
            logger.info("listener_stopped", listener=listener.name)

    async def _stop_app(self) -> None:
        try:
            await self.app.on_stop()
        except Exception as e:
            logger.error("application_stop_failed", error=str(e))

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> list[int]:
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_shutdown)
            except (NotImplementedError, RuntimeError, ValueError):
                logger.warning("signal_handler_unavailable", signal=sig.name)
                continue
            installed.append(sig)
        return installed


def run(app: App, cfg: BaseConfig) -> None:
    """Run app with the default CORS settings. Blocks until shutdown."""
    run_with_cors(app, cfg, default_cors_config())


def run_with_cors(app: App, cfg: BaseConfig, cors: CORSConfig, host: str = DEFAULT_HOST) -> None:
    """Configure logging from cfg and run app. Blocks until shutdown.

    Raises:
        StartupError, RouteConflictError, ListenerError: Startup failed.
    """
    configure_logging(cfg.log_level or "info", json_format=use_json_format(cfg.environment))
    asyncio.run(Runner(app, cfg, cors=cors, host=host).serve())
