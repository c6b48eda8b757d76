"""
Unison execution for hostsync.

Builds the unison command line for a generated profile, runs it, and turns
the captured output into progress updates and a :class:`RunResult`.
"""

import logging
import os
import shlex
import shutil
import subprocess
import time
from typing import List, Optional, Tuple

from .exceptions import DependencyMissing, SyncFailed
from .models import RunOptions, RunResult, RunStatus
from .progress import ProgressState, ProgressTracker, count_items


class ProgressReporter:
    """Receives progress callbacks from :class:`SyncRunner`. No-op by default."""

    def output_line(self, line: str) -> None:
        """A raw line arrived while unison is still running."""

    def start(self, total: int) -> None:
        """The item count is known and the replay is about to start."""

    def item(self, state: ProgressState) -> None:
        """One copy/skip line was processed."""

    def phase(self, text: str) -> None:
        """Unison announced a phase such as 'Reconciling changes'."""

    def finish(self, state: ProgressState) -> None:
        """The replay is complete."""


class SyncRunner:
    """Runs unison for one profile."""

    def __init__(
        self,
        unison_path: str,
        remote_unison_path: Optional[str] = None,
        pref_dir: Optional[str] = None,
        reporter: Optional[ProgressReporter] = None,
    ):
        """Initialize the runner.

        Args:
            unison_path: Configured path (or name) of the local unison binary
            remote_unison_path: Unison path on the remote host (``-servercmd``)
            pref_dir: Preferences directory holding the profile, exported as UNISON
            reporter: Receives progress updates
        """
        self.unison_path = unison_path
        self.remote_unison_path = remote_unison_path or unison_path
        self.pref_dir = os.path.expanduser(pref_dir) if pref_dir else None
        self.reporter = reporter or ProgressReporter()
        self.logger = logging.getLogger(__name__)

    def resolve_binary(self) -> str:
        """Resolve the configured unison binary.

        Raises:
            DependencyMissing: If it is not an executable file or on PATH
        """
        found = shutil.which(os.path.expanduser(self.unison_path))
        if not found:
            raise DependencyMissing(
                f"Unison not found at {self.unison_path}",
                dependency_name="unison",
                searched_path=self.unison_path,
            )
        return found

    def build_command(self, profile_name: str, options: RunOptions, binary: Optional[str] = None) -> List[str]:
        """Build the unison invocation. Extra args go last so they can override defaults."""
        # Roots are declared in the profile only
        cmd = [binary or self.unison_path, profile_name]
        cmd.extend([
            '-batch',
            '-prefer', 'newer',
            '-times',
            '-perms', '0',
            '-auto',
            '-ui', 'text',
            '-fastcheck', 'true',
            '-servercmd', self.remote_unison_path,
        ])

        if options.debug:
            cmd.extend(['-debug', 'all'])
        if options.force:
            cmd.extend(['-force', 'newer'])

        cmd.extend(options.extra_args)
        return cmd

    def _environment(self) -> dict:
        env = os.environ.copy()
        if self.pref_dir:
            env['UNISON'] = self.pref_dir
        return env

    def _execute(self, cmd: List[str]) -> Tuple[int, str]:
        """Run unison with stdout and stderr combined, capturing everything."""
        captured: List[str] = []
        process = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            text=True,
            env=self._environment(),
        )
        try:
            for line in process.stdout:
                captured.append(line)
                self.reporter.output_line(line.rstrip('\n'))
            returncode = process.wait()
        except KeyboardInterrupt:
            process.terminate()
            try:
                process.wait(timeout=10)
            except subprocess.TimeoutExpired:
                process.kill()
                process.wait()
            raise
        finally:
            if process.stdout:
                process.stdout.close()

        return returncode, ''.join(captured)

    def run(self, profile_name: str, options: Optional[RunOptions] = None) -> RunResult:
        """Run unison for ``profile_name``.

        Raises:
            DependencyMissing: If the unison binary cannot be resolved
            SyncFailed: If unison exits non-zero; carries the full output
        """
        options = options or RunOptions()
        binary = self.resolve_binary()
        cmd = self.build_command(profile_name, options, binary)
        command_str = shlex.join(cmd)

        if options.dry_run:
            self.logger.info(f"Dry run, not executing: {command_str}")
            return RunResult(status=RunStatus.DRY_RUN, command=command_str, profile=profile_name)

        self.logger.info(f"Running unison profile {profile_name}")
        self.logger.debug(f"Command: {command_str}")
        start_time = time.time()

        try:
            returncode, output = self._execute(cmd)
        except KeyboardInterrupt:
            duration = time.time() - start_time
            self.logger.warning(f"Unison run for {profile_name} interrupted after {duration:.1f}s")
            return RunResult(
                status=RunStatus.CANCELLED,
                duration=duration,
                command=command_str,
                profile=profile_name,
            )

        duration = time.time() - start_time

        if returncode != 0:
            self.logger.error(f"Unison exited with code {returncode}")
            raise SyncFailed(
                f"Unison failed with exit code {returncode}",
                exit_code=returncode,
                captured_output=output,
                command=command_str,
            )

        state = self.report_progress(output)
        self.logger.info(
            f"Unison run for {profile_name} finished: {state.processed} files in {duration:.1f}s"
        )
        return RunResult(
            status=RunStatus.SUCCESS,
            files_processed=state.processed,
            duration=duration,
            command=command_str,
            profile=profile_name,
        )

    def report_progress(self, output: str) -> ProgressState:
        """Replay captured output through the reporter."""
        tracker = ProgressTracker(on_item=self.reporter.item, on_phase=self.reporter.phase)
        self.reporter.start(count_items(output.splitlines()))
        state = tracker.replay(output)
        self.reporter.finish(state)
        return state
