"""Small path, string and byte helpers."""

from pathlib import Path

from ..models.errors import EnvironmentFailure


def decode_output(data: bytes) -> str:
    """Decode captured process output, replacing undecodable bytes."""
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


def home_dir() -> Path:
    """The current user's home directory.

    Raises:
        EnvironmentFailure: If the home directory cannot be determined
    """
    try:
        return Path.home()
    except (RuntimeError, KeyError) as e:
        raise EnvironmentFailure(f"Can't get your home directory: {e}")


def relative_home_path(name: str) -> Path:
    """Path to ``name`` under the home directory."""
    return home_dir() / name
