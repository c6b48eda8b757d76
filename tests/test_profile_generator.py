#!/usr/bin/env python3
"""
Tests for unison profile generation.
"""

import os
import shutil
import sys
import tempfile
from pathlib import Path

# Add src to path for testing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from hostsync.core.models import IgnoreKind, IgnoreRule, RemoteRoot, ResolvedCommand
from hostsync.core.profile_generator import ProfileGenerator


class TestProfileGenerator:
    """Test profile rendering and writing."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.pref_dir = os.path.join(self.temp_dir, "prefs")
        self.generator = ProfileGenerator(self.pref_dir)
        self.rules = [
            IgnoreRule(kind=IgnoreKind.NAME, pattern="*.log"),
            IgnoreRule(kind=IgnoreKind.PATH, pattern="build/out"),
        ]
        self.command = ResolvedCommand(
            name="git",
            remote_user="alice",
            remote_hosts=["192.168.1.5"],
            local_path="/home/x/git",
            remote_path="/home/x/git",
            unison_path="/usr/bin/unison",
            remote_unison_path="/usr/bin/unison",
            pref_dir=self.pref_dir,
            ignore_file=os.path.join(self.temp_dir, "ignore"),
        )

    def teardown_method(self):
        """Clean up test environment."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_remote_url(self):
        assert RemoteRoot(user="a", host="h", path="/abs").url == "ssh://a@h//abs"
        assert RemoteRoot(user="a", host="h", path="rel").url == "ssh://a@h/rel"

    def test_render_contents(self):
        content = self.generator.render(
            "git_sync", "/home/x/git", RemoteRoot(user="alice", host="h", path="/home/x/git"), self.rules
        )
        lines = content.splitlines()

        assert "root = /home/x/git" in lines
        assert "root = ssh://alice@h//home/x/git" in lines
        assert "batch = true" in lines
        assert "ignore = Name .git" in lines
        # User rules come after the built-in ones, in file order
        assert lines.index("ignore = Name *.log") < lines.index("ignore = Path build/out")
        assert lines.index("ignore = Name .git") < lines.index("ignore = Name *.log")

    def test_generate_creates_pref_dir(self):
        path = self.generator.generate_for_command(self.command, "192.168.1.5", self.rules)

        assert path == Path(self.pref_dir) / "git_sync.prf"
        assert path.is_file()
        assert "root = ssh://alice@192.168.1.5//home/x/git" in path.read_text()

    def test_generation_is_idempotent(self):
        path = self.generator.generate_for_command(self.command, "192.168.1.5", self.rules)
        first = path.read_bytes()
        self.generator.generate_for_command(self.command, "192.168.1.5", self.rules)

        assert path.read_bytes() == first
        # No temporary files left behind
        assert os.listdir(self.pref_dir) == ["git_sync.prf"]
