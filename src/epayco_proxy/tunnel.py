"""
Public tunnel for local development.

ePayco delivers confirmation callbacks server to server, so it cannot reach
a server listening on localhost. TunnelManager runs an external tunnel
client (localtunnel by default), reads the public URL it prints and records
it in a TunnelState, which is the single source for the confirmation URL
sent to ePayco when a checkout session is created.
"""

import asyncio
import logging
import re

from epayco_proxy.errors import TunnelUnavailable
from epayco_proxy.metrics import TUNNEL_UP

logger = logging.getLogger(__name__)

CONFIRMATION_PATH = "/api/checkout/confirmation"
DEFAULT_URL_PATTERN = r"https://[a-z0-9\-.]+\.loca\.lt"
AVAILABILITY_TIMEOUT = 5.0
STOP_GRACE_PERIOD = 5.0


class TunnelState:
    def __init__(self) -> None:
        self._public_url: str | None = None

    @property
    def public_url(self) -> str | None:
        return self._public_url

    def set_public_url(self, url: str) -> None:
        self._public_url = url.rstrip("/")
        TUNNEL_UP.set(1)

    def confirmation_url(self, fallback_base: str) -> str:
        """
        URL ePayco should call with payment confirmations.

        Evaluated on every call so a tunnel that comes up after startup is
        picked up without a restart.
        """
        base = self._public_url or fallback_base.rstrip("/")
        return f"{base}{CONFIRMATION_PATH}"


class TunnelManager:
    def __init__(
        self,
        state: TunnelState,
        command: list[str],
        timeout: float = 10.0,
        url_pattern: str = DEFAULT_URL_PATTERN,
    ) -> None:
        self._state = state
        self._command = list(command)
        self._timeout = timeout
        self._pattern = re.compile(url_pattern)
        self._process: asyncio.subprocess.Process | None = None
        self._tasks: list[asyncio.Task] = []

    async def start(self, port: int) -> str:
        """
        Spawn the tunnel client for ``port`` and wait for its public URL.

        Raises TunnelUnavailable when the client cannot be spawned, exits
        before printing a URL, or prints nothing matching within the timeout.
        """
        logger.info("Starting tunnel: %s --port %d", " ".join(self._command), port)
        try:
            process = await asyncio.create_subprocess_exec(
                *self._command,
                "--port",
                str(port),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TunnelUnavailable(f"Could not start tunnel process: {e}") from e
        self._process = process
        stderr_task = asyncio.create_task(process.stderr.read())
        self._tasks.append(stderr_task)
        try:
            url = await asyncio.wait_for(self._wait_for_url(process, stderr_task), timeout=self._timeout)
        except TimeoutError:
            await self.stop()
            raise TunnelUnavailable(f"Timed out after {self._timeout:g}s waiting for tunnel URL") from None
        except TunnelUnavailable:
            await self.stop()
            raise
        # the client keeps logging for its whole life; stop buffering stderr
        stderr_task.cancel()
        self._tasks.remove(stderr_task)
        self._state.set_public_url(url)
        self._tasks.append(asyncio.create_task(self._drain(process.stdout)))
        self._tasks.append(asyncio.create_task(self._drain(process.stderr)))
        logger.info("Tunnel active: %s", url)
        logger.info("Confirmation endpoint: %s%s", url, CONFIRMATION_PATH)
        return url

    async def _wait_for_url(self, process: asyncio.subprocess.Process, stderr_task: asyncio.Task) -> str:
        while True:
            line = await process.stdout.readline()
            if not line:
                # stdout closed: the process is gone and never reported a URL
                returncode = await process.wait()
                stderr = (await stderr_task).decode(errors="replace").strip()
                logger.error("Tunnel process exited with code %s: %s", returncode, stderr or "<no output>")
                raise TunnelUnavailable(
                    f"Tunnel process exited with code {returncode} before reporting a URL",
                    {"returncode": returncode, "stderr": stderr[-500:]},
                )
            text = line.decode(errors="replace")
            logger.debug("tunnel: %s", text.rstrip())
            match = self._pattern.search(text)
            if match:
                return match.group(0)

    async def _drain(self, stream: asyncio.StreamReader) -> None:
        while line := await stream.readline():
            logger.debug("tunnel: %s", line.decode(errors="replace").rstrip())

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()
        process, self._process = self._process, None
        if process is None or process.returncode is not None:
            return
        try:
            process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=STOP_GRACE_PERIOD)
        except TimeoutError:
            process.kill()
            await process.wait()
        logger.info("Tunnel process stopped")

    async def is_available(self) -> bool:
        try:
            process = await asyncio.create_subprocess_exec(
                *self._command,
                "--version",
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError:
            return False
        try:
            return await asyncio.wait_for(process.wait(), timeout=AVAILABILITY_TIMEOUT) == 0
        except TimeoutError:
            process.kill()
            await process.wait()
            return False


async def establish_tunnel(manager: TunnelManager, port: int) -> str | None:
    """Start the tunnel, degrading to local-only callbacks on failure."""
    if not await manager.is_available():
        logger.warning(
            "Tunnel client is not installed; serving on localhost only, ePayco confirmation callbacks will not reach this server"
        )
        return None
    try:
        return await manager.start(port)
    except TunnelUnavailable as e:
        logger.warning(
            "Tunnel unavailable (%s); serving on localhost only, ePayco confirmation callbacks will not reach this server",
            e.message,
        )
        return None
