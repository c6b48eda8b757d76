"""
Shell access for hostsync.

This module runs probe and bootstrap commands either locally or on a remote
host over non-interactive SSH. Both shells expose the same ``run`` method so
host inspection and bootstrap use one code path for either target.
"""

import logging
import platform
import socket
import subprocess
from typing import Any, Dict, List, Optional

_UNREACHABLE_MARKERS = (
    "Connection timed out",
    "Operation timed out",
    "Connection refused",
    "No route to host",
    "Could not resolve hostname",
    "Network is unreachable",
)


def _result(command: str, host: str, returncode: int, stdout: str, stderr: str) -> Dict[str, Any]:
    return {
        'success': returncode == 0,
        'returncode': returncode,
        'stdout': stdout,
        'stderr': stderr,
        'command': command,
        'host': host,
    }


class LocalShell:
    """Runs shell snippets on this machine with ``/bin/sh -c``."""

    host = "localhost"
    is_local = True

    def __init__(self, timeout: int = 600):
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    def run(self, command: str, input: Optional[str] = None, timeout: Optional[int] = None) -> Dict[str, Any]:
        """Execute a command locally.

        Returns:
            Dictionary with execution results
        """
        timeout = timeout or self.timeout
        self.logger.debug(f"Executing locally: {command}")
        try:
            result = subprocess.run(
                ['/bin/sh', '-c', command],
                input=input,
                capture_output=True,
                text=True,
                timeout=timeout
            )
            return _result(command, self.host, result.returncode, result.stdout, result.stderr)
        except subprocess.TimeoutExpired:
            self.logger.error(f"Command timed out after {timeout}s: {command}")
            return _result(command, self.host, -1, '', f'Command timed out after {timeout}s')


class SSHManager:
    """Manages non-interactive SSH connections to sync hosts."""

    def __init__(self, user: str, connect_timeout: int = 5, ssh_binary: str = 'ssh'):
        """Initialize SSH manager.

        Args:
            user: Remote user to log in as
            connect_timeout: SSH connection timeout in seconds
            ssh_binary: SSH client executable
        """
        self.user = user
        self.connect_timeout = connect_timeout
        self.ssh_binary = ssh_binary
        self.logger = logging.getLogger(__name__)

    def build_ssh_command(self, host: str, command: Optional[str] = None) -> List[str]:
        """Build SSH command with batch-mode options.

        Args:
            host: Target host
            command: Optional command to execute

        Returns:
            List of command arguments
        """
        ssh_cmd = [
            self.ssh_binary,
            '-o', 'BatchMode=yes',  # Don't prompt for passwords
            '-o', f'ConnectTimeout={self.connect_timeout}',
            '-o', 'PasswordAuthentication=no',
            f'{self.user}@{host}',
        ]

        if command:
            ssh_cmd.append(command)

        return ssh_cmd

    def ping_command(self, host: str) -> List[str]:
        """Single-packet ping; macOS takes the timeout with ``-t``."""
        if platform.system() == 'Darwin':
            return ['ping', '-c', '1', '-t', '1', host]
        return ['ping', '-c', '1', '-W', '1', host]

    def check_reachable(self, host: str, port: int = 22) -> Dict[str, Any]:
        """Network-level reachability: ICMP ping, then a TCP connect to the SSH port.

        Returns:
            Dictionary with ``reachable`` and diagnostic ``output``
        """
        output = ''
        try:
            result = subprocess.run(
                self.ping_command(host),
                capture_output=True,
                text=True,
                timeout=10
            )
            if result.returncode == 0:
                self.logger.debug(f"{host} answered ping")
                return {'reachable': True, 'output': result.stdout}
            output = (result.stdout + result.stderr).strip()
        except FileNotFoundError:
            output = 'ping not available'
        except subprocess.TimeoutExpired:
            output = 'ping timed out'

        # ICMP is often filtered; an open SSH port counts as reachable
        try:
            sock = socket.create_connection((host, port), timeout=self.connect_timeout)
            sock.close()
            self.logger.debug(f"{host}:{port} accepted a TCP connection")
            return {'reachable': True, 'output': output}
        except OSError as e:
            output = f"{output}\n{host}:{port}: {e}".strip()

        self.logger.debug(f"{host} is unreachable: {output}")
        return {'reachable': False, 'output': output}

    def test_connection(self, host: str) -> Dict[str, Any]:
        """Authenticated shell access check.

        Returns:
            Dictionary with ``authenticated``, ``unreachable`` (the SSH layer
            could not connect at all) and the SSH ``output``
        """
        result = self.execute_command(host, 'echo "SSH connection successful"', timeout=self.connect_timeout + 10)
        output = (result['stderr'] or result['stdout']).strip()
        if result['success']:
            self.logger.debug(f"SSH connection to {self.user}@{host} successful")
            return {'authenticated': True, 'unreachable': False, 'output': output}

        unreachable = any(marker in output for marker in _UNREACHABLE_MARKERS)
        self.logger.debug(f"SSH connection to {self.user}@{host} failed: {output}")
        return {'authenticated': False, 'unreachable': unreachable, 'output': output}

    def execute_command(
        self,
        host: str,
        command: str,
        input: Optional[str] = None,
        timeout: int = 600
    ) -> Dict[str, Any]:
        """Execute a command on the remote host via SSH.

        Args:
            host: Target host
            command: Command to execute
            input: Text fed to the remote command's stdin
            timeout: Command timeout

        Returns:
            Dictionary with execution results
        """
        cmd = self.build_ssh_command(host, command)
        self.logger.debug(f"Executing SSH command on {host}: {command}")

        try:
            result = subprocess.run(
                cmd,
                input=input,
                capture_output=True,
                text=True,
                timeout=timeout
            )
            return _result(command, host, result.returncode, result.stdout, result.stderr)
        except subprocess.TimeoutExpired:
            self.logger.error(f"SSH command timed out after {timeout}s: {command}")
            return _result(command, host, -1, '', f'Command timed out after {timeout}s')
        except FileNotFoundError:
            self.logger.error("SSH client not found. Please install OpenSSH client.")
            return _result(command, host, 127, '', f'{self.ssh_binary}: command not found')


class RemoteShell:
    """Runs shell snippets on one remote host through :class:`SSHManager`."""

    is_local = False

    def __init__(self, ssh_manager: SSHManager, host: str):
        self.ssh = ssh_manager
        self.host = host

    def run(self, command: str, input: Optional[str] = None, timeout: Optional[int] = None) -> Dict[str, Any]:
        return self.ssh.execute_command(self.host, command, input=input, timeout=timeout or 600)
