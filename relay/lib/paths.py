import os
from pathlib import Path

AGENTS = "agents"
MESSAGES = "messages"


def relay_home() -> Path:
    """Base directory shared by every agent on this machine.

    RELAY_HOME overrides the default ~/.relay so that separate networks (or
    tests) can live side by side.
    """
    override = os.environ.get("RELAY_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".relay"


def collection_dir(collection: str) -> Path:
    return relay_home() / collection


def agents_dir() -> Path:
    return collection_dir(AGENTS)


def messages_dir() -> Path:
    return collection_dir(MESSAGES)


def config_file() -> Path:
    return relay_home() / "config.yaml"
