"""Open a path with the platform's default application."""

from __future__ import annotations

import os
import platform
import subprocess

from shelf_search.errors import OpenerError


def opener_command(target: str, system: str | None = None) -> list[str] | None:
    """Return the launcher command for `target`, or None where os.startfile applies."""
    system = system or platform.system()
    if system == "Windows":
        return None
    if system == "Darwin":
        return ["open", target]
    return ["xdg-open", target]


def open_path(target: str) -> None:
    """Invoke the default handler synchronously, raising OpenerError on failure."""
    command = opener_command(target)
    if command is None:
        try:
            os.startfile(target)  # type: ignore[attr-defined]
        except OSError as error:
            raise OpenerError(target, str(error)) from error
        return
    try:
        subprocess.run(
            command,
            check=True,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )
    except FileNotFoundError as error:
        raise OpenerError(target, f"{command[0]} is not available") from error
    except subprocess.CalledProcessError as error:
        detail = (error.stderr or b"").decode("utf-8", errors="replace").strip()
        reason = detail or f"{command[0]} exited with {error.returncode}"
        raise OpenerError(target, reason) from error
