"""Scheduler daemon that runs a roster sync pass on a fixed interval.

No external scheduler library is required; it uses stdlib ``time``,
``signal``, and ``subprocess`` only.

Typical usage via the CLI::

    roster-audit start-scheduler --interval-minutes 15

Or import directly::

    from roster_audit.scheduler import SchedulerDaemon
    daemon = SchedulerDaemon(db_path="data/db/roster_audit.db", interval_minutes=15)
    daemon.start()  # blocks until Ctrl-C

Each pass is invoked as a subprocess (the installed ``sync-roster``
command), so every pass has its own process, logging, and exit code.  A
failed pass is logged and does not stop the daemon.  Characters that failed
stay stale and are picked up again by the next pass.
"""

from __future__ import annotations

import logging
import platform
import signal
import subprocess
import sys
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

log = logging.getLogger(__name__)

PASS_TIMEOUT_SECONDS = 3600


# ── Helpers ───────────────────────────────────────────────────────────────────


def _find_cli_exe() -> str:
    """Locate the roster-audit CLI executable inside the active virtual env.

    Adds the ``.exe`` suffix on Windows.  Raises ``RuntimeError`` if it is
    not found.
    """
    scripts_dir = Path(sys.executable).parent
    name = "roster-audit.exe" if platform.system() == "Windows" else "roster-audit"
    candidate = scripts_dir / name
    if candidate.exists():
        return str(candidate)
    raise RuntimeError(
        f"Could not find roster-audit executable in {scripts_dir}. "
        "Run: pip install -e ."
    )


# ── Daemon ────────────────────────────────────────────────────────────────────


class SchedulerDaemon:
    """Runs ``sync-roster`` every ``interval_minutes``.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file, forwarded to every pass.
    interval_minutes:
        Minutes to wait after a pass finishes before starting the next.
    skip_initial:
        When *True*, wait one interval before the first pass.
    config_path:
        Optional TOML config forwarded to every pass.
    cli_exe:
        Full path to the CLI executable.  Auto-detected from the active
        virtual environment when *None*.
    """

    def __init__(
        self,
        db_path: str,
        interval_minutes: int = 15,
        skip_initial: bool = False,
        config_path: Optional[str] = None,
        cli_exe: Optional[str] = None,
    ) -> None:
        if interval_minutes < 1:
            raise ValueError(f"interval_minutes must be >= 1, got {interval_minutes}.")
        self.db_path = db_path
        self.interval = timedelta(minutes=interval_minutes)
        self.skip_initial = skip_initial
        self.config_path = config_path
        self.cli_exe = cli_exe or _find_cli_exe()
        self._running = False

    def _run_cmd(self, args: list[str], label: str) -> bool:
        """Run a CLI sub-command.  Returns ``True`` on success (exit code 0)."""
        cmd = [self.cli_exe] + args
        log.info("[%s] Running: %s", label, " ".join(cmd))
        try:
            result = subprocess.run(cmd, timeout=PASS_TIMEOUT_SECONDS)
            if result.returncode == 0:
                log.info("[%s] Completed successfully (exit 0).", label)
                return True
            log.error("[%s] Exited with code %d.", label, result.returncode)
            return False
        except subprocess.TimeoutExpired:
            log.error("[%s] Timed out after %d s.", label, PASS_TIMEOUT_SECONDS)
            return False
        except OSError as exc:
            log.error("[%s] Could not start: %s", label, exc, exc_info=True)
            return False

    def sync_args(self) -> list[str]:
        args = ["sync-roster", "--db-path", self.db_path]
        if self.config_path:
            args += ["--config", self.config_path]
        return args

    def run_sync(self) -> bool:
        log.info(
            "=== Roster sync starting at %s ===",
            datetime.now().isoformat(timespec="seconds"),
        )
        return self._run_cmd(self.sync_args(), "sync-roster")

    # ── Main loop ─────────────────────────────────────────────────────────────

    def start(self) -> None:
        """Start the daemon.  Blocks until Ctrl-C (or SIGTERM on Linux/macOS)."""
        next_run = datetime.now() + self.interval if self.skip_initial else datetime.now()
        log.info(
            "Scheduler started.  interval=%s  db=%s  first run: %s",
            self.interval, self.db_path, next_run.isoformat(timespec="seconds"),
        )

        self._running = True

        def _shutdown(signum, frame):  # noqa: ANN001
            log.info("Signal %d received, stopping scheduler.", signum)
            self._running = False

        signal.signal(signal.SIGINT, _shutdown)
        if platform.system() != "Windows":
            signal.signal(signal.SIGTERM, _shutdown)

        # Tick every 30 s
        while self._running:
            if datetime.now() >= next_run:
                self.run_sync()
                next_run = datetime.now() + self.interval
                log.info("Next sync scheduled: %s", next_run.isoformat(timespec="seconds"))
            time.sleep(30)

        log.info("Scheduler stopped.")
