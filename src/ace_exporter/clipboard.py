"""Copy text to the system clipboard using the platform's command-line tool."""

import logging
import shutil
import subprocess
import sys

logger = logging.getLogger(__name__)


class ClipboardError(RuntimeError):
    """No working clipboard tool was found."""


def _candidate_commands() -> list[list[str]]:
    if sys.platform == "darwin":
        return [["pbcopy"]]
    elif sys.platform == "win32":
        return [["clip"]]
    else:  # Linux
        return [
            ["wl-copy"],
            ["xclip", "-selection", "clipboard"],
            ["xsel", "--clipboard", "--input"],
        ]


def copy_text(text: str) -> None:
    """Place ``text`` on the clipboard; raises ClipboardError if that is impossible."""
    for command in _candidate_commands():
        if shutil.which(command[0]) is None:
            continue
        try:
            subprocess.run(command, input=text.encode("utf-8"), check=True, timeout=10)
            return
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("Clipboard command %s failed: %s", command[0], e)

    raise ClipboardError("No clipboard tool available")
