"""
External player backends for nightride.
"""
import json
import os
import shutil
import signal
import socket
import subprocess
import time
from typing import Any, Dict, Optional

from nightride.logging_config import (
    get_logger,
    ChannelUnavailable,
    PlayerCommandError,
    ProcessSpawnFailed,
)

logger = get_logger('player')


class PlayerBackend:
    """Base class for player backends.

    A backend is the set of things the controller can ask the external
    player to do. It owns the player process and its control channel.
    """

    def __init__(self, executable: str):
        self.executable = executable

    def spawn(self) -> None:
        """Launch the player process and open its control channel."""
        raise NotImplementedError("Subclasses must implement spawn()")

    def is_active(self) -> bool:
        """Whether a player process is running."""
        raise NotImplementedError("Subclasses must implement is_active()")

    def load(self, url: str) -> None:
        """Load a stream, replacing the current one."""
        raise NotImplementedError("Subclasses must implement load()")

    def play(self) -> None:
        """Resume playback."""
        raise NotImplementedError("Subclasses must implement play()")

    def pause(self) -> None:
        """Pause playback."""
        raise NotImplementedError("Subclasses must implement pause()")

    def set_volume(self, volume: int) -> None:
        """Set absolute volume (0-100)."""
        raise NotImplementedError("Subclasses must implement set_volume()")

    def get_volume(self) -> int:
        """Read the player's volume."""
        raise NotImplementedError("Subclasses must implement get_volume()")

    def stop(self) -> None:
        """Stop playback."""
        raise NotImplementedError("Subclasses must implement stop()")

    def close(self) -> None:
        """Close the channel and release the process."""
        raise NotImplementedError("Subclasses must implement close()")


class MpvPlayer(PlayerBackend):
    """mpv driven over its JSON IPC socket."""

    def __init__(self, executable: str = "mpv", socket_path: str = "/tmp/nightride.sock",
                 timeout: float = 1.0, spawn_timeout: float = 5.0):
        super().__init__(executable)
        self.socket_path = socket_path
        self.timeout = timeout
        self.spawn_timeout = spawn_timeout
        self.process: Optional[subprocess.Popen] = None
        self._sock: Optional[socket.socket] = None
        self._buffer = b""
        self._request_id = 0

    def spawn(self) -> None:
        """Start mpv idle with an IPC server and wait for the socket.

        Raises:
            ProcessSpawnFailed: if mpv is missing or dies during start-up
            ChannelUnavailable: if the socket never appears
        """
        mpv = shutil.which(self.executable)
        if not mpv:
            raise ProcessSpawnFailed(f"{self.executable} not found in PATH")

        self._remove_socket()
        cmd = [
            mpv,
            "--idle=yes",
            "--no-video",
            "--no-terminal",
            f"--input-ipc-server={self.socket_path}",
        ]
        try:
            self.process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                preexec_fn=os.setsid,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.error(f"Failed to start {self.executable}: {e}")
            raise ProcessSpawnFailed(f"Failed to start {self.executable}: {e}") from e

        logger.info(f"Started {self.executable} (pid {self.process.pid})")
        try:
            self._wait_for_socket()
        except (ProcessSpawnFailed, ChannelUnavailable):
            self.close()
            raise

    def _wait_for_socket(self) -> None:
        deadline = time.monotonic() + self.spawn_timeout
        while time.monotonic() < deadline:
            if self.process.poll() is not None:
                raise ProcessSpawnFailed(
                    f"{self.executable} exited during start-up (status {self.process.returncode})"
                )
            if os.path.exists(self.socket_path):
                return
            time.sleep(0.05)
        raise ChannelUnavailable(f"IPC socket did not appear at {self.socket_path}")

    def is_active(self) -> bool:
        return self.process is not None and self.process.poll() is None

    def load(self, url: str) -> None:
        self._command("loadfile", url, "replace")
        logger.info(f"Loading stream: {url}")

    def play(self) -> None:
        self._command("set_property", "pause", False)

    def pause(self) -> None:
        self._command("set_property", "pause", True)

    def set_volume(self, volume: int) -> None:
        self._command("set_property", "volume", volume)
        logger.debug(f"Volume set to {volume}%")

    def get_volume(self) -> int:
        return int(round(float(self._command("get_property", "volume"))))

    def stop(self) -> None:
        self._command("stop")

    def close(self) -> None:
        """Close the socket and terminate mpv."""
        self._disconnect()
        if self.process and self.process.poll() is None:
            try:
                os.killpg(os.getpgid(self.process.pid), signal.SIGTERM)
                logger.info(f"Stopping player process: {self.process.pid}")
                self.process.wait(timeout=1.0)
            except (ProcessLookupError, PermissionError) as e:
                logger.warning(f"Process termination error: {e}")
            except subprocess.TimeoutExpired:
                try:
                    os.killpg(os.getpgid(self.process.pid), signal.SIGKILL)
                    logger.warning(f"Force killed player process: {self.process.pid}")
                    self.process.wait(timeout=0.5)
                except (ProcessLookupError, PermissionError, subprocess.TimeoutExpired) as e:
                    logger.warning(f"Force kill failed: {e}")
        self.process = None
        self._remove_socket()

    # -------------------------------------------------------------------------
    # IPC
    # -------------------------------------------------------------------------
    def _connect(self) -> None:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(self.timeout)
        try:
            sock.connect(self.socket_path)
        except OSError as e:
            sock.close()
            raise ChannelUnavailable(f"Cannot connect to {self.socket_path}: {e}") from e
        self._sock = sock
        self._buffer = b""
        logger.debug(f"Connected to {self.socket_path}")

    def _disconnect(self) -> None:
        if self._sock is not None:
            try:
                self._sock.close()
            except OSError:
                pass
            self._sock = None
        self._buffer = b""

    def _command(self, *args: Any) -> Any:
        """Send one command and wait for its reply.

        Returns:
            The reply's ``data`` field

        Raises:
            ChannelUnavailable: on connect, send or receive failure or timeout
            PlayerCommandError: if mpv reports an error
        """
        if self._sock is None:
            self._connect()

        self._request_id += 1
        request_id = self._request_id
        payload = json.dumps({"command": list(args), "request_id": request_id})

        try:
            self._sock.sendall(payload.encode("utf-8") + b"\n")
            reply = self._read_reply(request_id)
        except OSError as e:
            self._disconnect()
            raise ChannelUnavailable(f"Control channel error: {e}") from e
        except ChannelUnavailable:
            self._disconnect()
            raise

        if reply.get("error") != "success":
            raise PlayerCommandError(f"{args[0]} failed: {reply.get('error')}")
        return reply.get("data")

    def _read_reply(self, request_id: int) -> Dict[str, Any]:
        while True:
            while b"\n" not in self._buffer:
                chunk = self._sock.recv(4096)
                if not chunk:
                    raise ChannelUnavailable("Control channel closed by player")
                self._buffer += chunk

            line, self._buffer = self._buffer.split(b"\n", 1)
            if not line.strip():
                continue
            try:
                message = json.loads(line)
            except ValueError:
                logger.debug(f"Ignoring malformed IPC line: {line[:80]!r}")
                continue
            if not isinstance(message, dict):
                continue

            # mpv interleaves asynchronous events with replies
            if "event" in message:
                continue
            if message.get("request_id") == request_id:
                return message

    def _remove_socket(self) -> None:
        try:
            os.unlink(self.socket_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove socket {self.socket_path}: {e}")
