import logging
import sys

from relay.lib.uuid7 import short_id

log = logging.getLogger(__name__)

_QUIET_EXCEPTIONS = ("Exit", "Abort", "KeyboardInterrupt")


def install_error_handler(source: str):
    """Report uncaught errors as one `source: Type: message` line before the traceback."""
    previous_hook = sys.excepthook

    def error_hook(exc_type, exc_value, exc_traceback):
        if exc_type.__name__ not in _QUIET_EXCEPTIONS:
            print(f"{source}: {exc_type.__name__}: {exc_value}", file=sys.stderr)
        previous_hook(exc_type, exc_value, exc_traceback)

    sys.excepthook = error_hook


def log_error(source: str, agent_id: str | None, error: Exception, command: str = ""):
    """Log a handled CLI failure with its traceback, tagged by source and agent."""
    tag = f"{source}:{short_id(agent_id)}" if agent_id else source
    where = f" {command}" if command else ""
    log.error(
        f"[{tag}]{where} {type(error).__name__}: {error}",
        exc_info=(type(error), error, error.__traceback__),
    )
