"""
Console user interaction for Site Updater.

Prompts, choices, credentials and diagnostics all go to stderr so stdout
stays clean for list output.
"""

import getpass
import sys
from typing import Callable, List, Optional

from ..transport.http import Credentials


class ConsoleUI:
    """
    Terminal implementation of the user-interaction collaborator.

    Args:
        stream: Where prompts and diagnostics are written (default: stderr)
        read_line: Reads one line of input (default: input)
        read_password: Reads a password without echo (default: getpass)
    """

    def __init__(
        self,
        stream=None,
        read_line: Callable[[str], str] = None,
        read_password: Callable[[str], str] = None,
    ):
        self.stream = stream or sys.stderr
        self._read_line = read_line or input
        self._read_password = read_password or getpass.getpass

    def _ask(self, prompt: str) -> Optional[str]:
        print(prompt, end="", file=self.stream, flush=True)
        try:
            return self._read_line("")
        except EOFError:
            return None

    def prompt_yes_no(self, title: str, message: str) -> bool:
        line = self._ask(f"{title}: {message} ")
        return bool(line) and line.strip()[:1] in ("y", "Y")

    def choose_one(self, message: str, options: List[str], default: int = 0) -> Optional[int]:
        """
        Ask the user to pick one option.

        Returns:
            Index of the chosen option, or None if input ended
        """
        if not options:
            return None
        print(message, file=self.stream)
        for i, option in enumerate(options):
            print(f"{i + 1}) {option}", file=self.stream)
        while True:
            line = self._ask(f"Your choice (default: {default + 1}: {options[default]})? ")
            if line is None:
                return None
            line = line.strip()
            if not line:
                return default
            try:
                choice = int(line)
            except ValueError:
                continue
            if 0 < choice <= len(options):
                return choice - 1

    def get_credentials(self, site) -> Optional[Credentials]:
        """Ask for the login of an update site. Returns None if the user gives up."""
        default = site.username or ""
        suffix = f" [{default}]" if default else ""
        username = self._ask(f"User name for {site.name}{suffix}: ")
        if username is None:
            return None
        username = username.strip() or default
        if not username:
            return None
        try:
            password = self._read_password(f"Password for {username}@{site.name}: ")
        except EOFError:
            return None
        return Credentials(username=username, password=password)

    def report_progress(self, job_id: str, done: int, total: int):
        size_mb = done / (1024 * 1024)
        if total > 0:
            pct = done / total * 100
            total_mb = total / (1024 * 1024)
            self.info(f"  ↓ {job_id}: {size_mb:.1f}/{total_mb:.1f} MB ({pct:.0f}%)")
        else:
            self.info(f"  ↓ {job_id}: {size_mb:.1f} MB")

    def warn(self, message: str):
        print(message, file=self.stream)

    def info(self, message: str):
        print(message, file=self.stream)
