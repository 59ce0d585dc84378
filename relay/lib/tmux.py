"""tmux control: the only terminal operations the relay needs."""

from __future__ import annotations

import asyncio
import logging

from relay.errors import TmuxError, TmuxServerError, TmuxTargetNotFoundError, TmuxTimeoutError

log = logging.getLogger(__name__)

_NOT_FOUND_MARKERS = ("can't find", "no such", "not found")
_SERVER_MARKERS = ("no server running", "error connecting", "permission denied")


def session_of(target: str) -> str:
    """Session part of a `session:window.pane` target."""
    return target.split(":", 1)[0]


def _classify(args: tuple[str, ...], returncode: int, stderr: str) -> TmuxError:
    lowered = stderr.lower()
    command = " ".join(args[:1])
    if any(marker in lowered for marker in _NOT_FOUND_MARKERS):
        return TmuxTargetNotFoundError(stderr or f"tmux {command}: target not found")
    if any(marker in lowered for marker in _SERVER_MARKERS):
        return TmuxServerError(stderr or "tmux server unavailable")
    return TmuxError(stderr or f"tmux {command} exited with {returncode}")


class Tmux:
    """Async wrapper over the tmux binary."""

    def __init__(self, binary: str = "tmux", timeout: float | None = 10.0):
        self.binary = binary
        self.timeout = timeout

    async def run(self, *args: str) -> str:
        """Run `tmux <args>` and return stdout. Raises a TmuxError subclass on failure."""
        try:
            proc = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise TmuxError(f"{self.binary} command not found. Is tmux installed?") from e
        except ValueError as e:
            # argv cannot carry NUL bytes or unencodable text
            raise TmuxError(f"tmux {args[0]} rejected its arguments: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise TmuxTimeoutError(f"tmux {args[0]} timed out after {self.timeout}s") from e

        if proc.returncode != 0:
            raise _classify(args, proc.returncode, stderr.decode(errors="replace").strip())
        return stdout.decode(errors="replace")

    async def has_session(self, name: str) -> bool:
        try:
            await self.run("has-session", "-t", name)
        except TmuxTargetNotFoundError:
            return False
        except TmuxError as e:
            # has-session reports a missing session as a bare non-zero exit
            if isinstance(e, (TmuxServerError, TmuxTimeoutError)):
                raise
            return False
        return True

    async def send_keys(self, target: str, text: str, press_enter: bool = True) -> str:
        """Type `text` into `target`; with press_enter, follow it with Enter."""
        if text:
            await self.run("send-keys", "-t", target, "-l", text)
        if press_enter:
            await self.run("send-keys", "-t", target, "Enter")
        log.debug(f"Sent {len(text)} chars to {target} (enter={press_enter})")
        return f'Sent keys "{text}" to "{target}"'
