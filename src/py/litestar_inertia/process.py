"""SSR renderer process management.

The renderer is started as ``<runtime> <script> --port <port>`` in its own process group, and
stopped by asking it to exit through ``GET /shutdown``. If it cannot be reached, or does not exit
in time, the process group is terminated and then killed.
"""

import atexit
import logging
import os
import platform
import shutil
import signal
import subprocess
import threading
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar
from urllib.parse import urlparse

import httpx

from litestar_inertia.exceptions import ProcessError

__all__ = ("RendererHandle", "SSRProcess", "parse_bind_address")

logger = logging.getLogger(__name__)

# Windows-only constant for creating new process groups
_CREATE_NEW_PROCESS_GROUP: int = getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)


@dataclass(frozen=True)
class RendererHandle:
    """A running renderer process."""

    pid: int
    url: str

    @property
    def port(self) -> int:
        return urlparse(self.url).port or 80


def parse_bind_address(bind_address: str) -> "tuple[str, int]":
    """Split ``host:port`` or ``http://host:port`` into its parts.

    Args:
        bind_address: The address the renderer listens on.

    Raises:
        ProcessError: If the address has no port.

    Returns:
        The host and port.
    """
    parsed = urlparse(bind_address if "://" in bind_address else f"http://{bind_address}")
    try:
        port = parsed.port
    except ValueError as exc:
        msg = f"Invalid renderer address {bind_address!r}: {exc!s}"
        raise ProcessError(msg) from exc
    if port is None or not parsed.hostname:
        msg = f"Renderer address {bind_address!r} must include a host and a port."
        raise ProcessError(msg)
    return parsed.hostname, port


class SSRProcess:
    """Starts and stops SSR renderer processes.

    Every started process is tracked until it is stopped, and all of them are stopped when the
    interpreter exits. An instance is registered for that cleanup only while it tracks processes.

    Args:
        runtime: Name of the JavaScript runtime binary looked up on ``PATH``.
        executable_path: Explicit path to the runtime, bypassing the ``PATH`` lookup.
        http_client: Client used for ``/shutdown`` and ``/health`` calls.
        shutdown_timeout: Seconds to wait for the process to exit before terminating it.
        startup_grace: Seconds to watch a fresh process for an immediate exit.
    """

    _instances: "ClassVar[list[SSRProcess]]" = []
    _atexit_registered: ClassVar[bool] = False

    def __init__(
        self,
        runtime: str = "node",
        *,
        executable_path: "Path | str | None" = None,
        http_client: "httpx.Client | None" = None,
        shutdown_timeout: float = 5.0,
        startup_grace: float = 0.2,
    ) -> None:
        self.runtime = runtime
        self.executable_path = executable_path
        self.shutdown_timeout = shutdown_timeout
        self.startup_grace = startup_grace
        self._http = http_client
        self._lock = threading.Lock()
        self._processes: "dict[int, tuple[str, subprocess.Popen[Any]]]" = {}

        if not SSRProcess._atexit_registered:
            atexit.register(SSRProcess._cleanup_all_instances)
            SSRProcess._atexit_registered = True

    @classmethod
    def _cleanup_all_instances(cls) -> None:
        """Stop every renderer still tracked by any instance."""
        for instance in list(cls._instances):
            for handle in instance.handles:
                with suppress(Exception):
                    instance.stop(handle)

    @property
    def handles(self) -> "list[RendererHandle]":
        with self._lock:
            return [RendererHandle(pid=pid, url=url) for pid, (url, _) in self._processes.items()]

    def _resolve_executable(self) -> str:
        if self.executable_path:
            return str(self.executable_path)
        path = shutil.which(self.runtime)
        if path is None:
            msg = f"Executable {self.runtime!r} not found."
            raise ProcessError(msg)
        return path

    def _http_get(self, url: str, timeout: float) -> httpx.Response:
        if self._http is not None:
            return self._http.get(url, timeout=timeout)
        with httpx.Client() as client:
            return client.get(url, timeout=timeout)

    def start(self, script_path: "Path | str | bytes", bind_address: str) -> RendererHandle:
        """Start a renderer.

        Args:
            script_path: Path to the server bundle, e.g. ``bootstrap/ssr/ssr.js``.
            bind_address: ``host:port`` (or URL) the renderer listens on.

        Raises:
            ProcessError: If the script does not exist, its path is not valid text, the runtime is
                missing, or the process cannot be spawned or exits immediately.

        Returns:
            A handle to the running renderer.
        """
        if isinstance(script_path, bytes):
            try:
                script_path = script_path.decode("utf-8")
            except UnicodeDecodeError as exc:
                msg = "The renderer script path contains invalid UTF-8 characters."
                raise ProcessError(msg) from exc
        path = Path(script_path)
        script = str(path)
        try:
            script.encode("utf-8")
        except UnicodeError as exc:
            msg = "The renderer script path contains invalid UTF-8 characters."
            raise ProcessError(msg) from exc
        if not path.exists():
            msg = f"Renderer script not found at {script!r}."
            raise ProcessError(msg)

        host, port = parse_bind_address(bind_address)
        command = [self._resolve_executable(), script, "--port", str(port)]
        kwargs: "dict[str, Any]" = {"stdout": None, "stderr": None}
        if platform.system() == "Windows":
            kwargs["creationflags"] = _CREATE_NEW_PROCESS_GROUP
        else:
            kwargs["start_new_session"] = True

        try:
            process = subprocess.Popen(command, **kwargs)  # noqa: S603
        except OSError as exc:
            msg = f"Failed to start renderer process: {exc!s}"
            raise ProcessError(msg, command=command) from exc

        try:
            exit_code = process.wait(timeout=self.startup_grace)
        except subprocess.TimeoutExpired:
            exit_code = None
        if exit_code is not None:
            msg = f"Renderer process exited immediately (exit {exit_code})"
            raise ProcessError(msg, command=command, exit_code=exit_code)

        url = f"http://{host}:{port}"
        with self._lock:
            self._processes[process.pid] = (url, process)
            if self not in SSRProcess._instances:
                SSRProcess._instances.append(self)
        logger.info("Started SSR renderer (pid %s) at %s", process.pid, url)
        return RendererHandle(pid=process.pid, url=url)

    def is_running(self, handle: RendererHandle) -> bool:
        with self._lock:
            tracked = self._processes.get(handle.pid)
        return tracked is not None and tracked[1].poll() is None

    def check_health(self, handle: RendererHandle, timeout: float = 1.0) -> bool:
        """Return True when the renderer answers ``GET /health`` with a 2xx status.

        Args:
            handle: The renderer.
            timeout: Seconds to wait for the answer.

        Returns:
            Whether the renderer is healthy.
        """
        try:
            response = self._http_get(f"{handle.url}/health", timeout)
        except httpx.HTTPError:
            return False
        return response.is_success

    def wait_until_ready(self, handle: RendererHandle, timeout: float = 10.0, interval: float = 0.1) -> bool:
        """Poll the renderer until it is healthy.

        Args:
            handle: The renderer.
            timeout: Seconds to keep polling.
            interval: Seconds between polls.

        Raises:
            ProcessError: If the process exits while it is polled.

        Returns:
            True once healthy, False when the timeout elapsed first.
        """
        stop = threading.Event()
        remaining = timeout
        while remaining > 0:
            if not self.is_running(handle):
                msg = f"Renderer process {handle.pid} exited before becoming ready."
                raise ProcessError(msg)
            if self.check_health(handle, timeout=min(interval * 10, remaining)):
                return True
            stop.wait(interval)
            remaining -= interval
        logger.warning("SSR renderer at %s did not report healthy within %ss", handle.url, timeout)
        return False

    def stop(self, handle: RendererHandle) -> None:
        """Stop a renderer.

        The renderer is asked to exit through ``GET /shutdown``. When that request fails, or the
        process has not exited after ``shutdown_timeout`` seconds, its process group is terminated
        and then killed. Stopping an already stopped handle does nothing.

        Args:
            handle: The renderer.
        """
        with self._lock:
            tracked = self._processes.pop(handle.pid, None)
            if not self._processes and self in SSRProcess._instances:
                SSRProcess._instances.remove(self)
        if tracked is None:
            return
        process = tracked[1]
        if process.poll() is not None:
            return

        try:
            self._http_get(f"{handle.url}/shutdown", self.shutdown_timeout)
        except httpx.HTTPError as exc:
            logger.warning("SSR renderer at %s did not accept shutdown, terminating it: %s", handle.url, exc)
            self._signal_group(process, signal.SIGTERM)

        try:
            process.wait(timeout=self.shutdown_timeout)
        except subprocess.TimeoutExpired:
            self._signal_group(process, signal.SIGTERM)
            try:
                process.wait(timeout=1.0)
            except subprocess.TimeoutExpired:
                self._signal_group(process, getattr(signal, "SIGKILL", signal.SIGTERM))
                process.wait(timeout=1.0)
        logger.info("Stopped SSR renderer (pid %s)", handle.pid)

    @staticmethod
    def _signal_group(process: "subprocess.Popen[Any]", sig: int) -> None:
        """Signal the whole process group, falling back to the process itself."""
        if process.poll() is not None:
            return
        try:
            os.killpg(process.pid, sig)
        except AttributeError:
            if sig == signal.SIGTERM:
                process.terminate()
            else:
                process.kill()
        except ProcessLookupError:
            pass
