import pytest

from relay.errors import TmuxTargetNotFoundError
from relay.lib import config, paths


class FakeTerminal:
    """Records send_keys calls in place of a real tmux server."""

    def __init__(self, sessions=(), fail_with: Exception | None = None):
        self.sessions = set(sessions)
        self.fail_with = fail_with
        self.calls: list[tuple[str, str, bool]] = []

    async def has_session(self, name: str) -> bool:
        return name in self.sessions

    async def send_keys(self, target: str, text: str, press_enter: bool = True) -> str:
        if self.fail_with is not None:
            raise self.fail_with
        session = target.split(":", 1)[0]
        if not target.startswith("%") and session not in self.sessions:
            raise TmuxTargetNotFoundError(f"can't find session: {session}")
        self.calls.append((target, text, press_enter))
        return f'Sent keys "{text}" to "{target}"'


@pytest.fixture
def test_relay(monkeypatch, tmp_path):
    """Isolated relay home per test.

    Provides:
    - RELAY_HOME pointed at a fresh tmp directory
    - config.yaml with a zero settle delay so delivery tests stay fast
    - a cleared config cache before and after
    """
    home = tmp_path / "relay"
    home.mkdir()
    monkeypatch.setenv("RELAY_HOME", str(home))
    (home / "config.yaml").write_text("settle_delay_seconds: 0\n")
    config.clear_cache()

    yield home

    config.clear_cache()


@pytest.fixture
def terminal():
    return FakeTerminal(sessions={"alpha", "beta"})


@pytest.fixture
def agents_dir(test_relay):
    return paths.agents_dir()


@pytest.fixture
def messages_dir(test_relay):
    return paths.messages_dir()


@pytest.fixture
def make_terminal():
    return FakeTerminal
