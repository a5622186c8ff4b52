"""
Tests for create-if-absent scaffolding and the managed .gitignore block.
"""

import pytest

from shipyard.errors import ScaffoldError
from shipyard.scaffold import AppendOutcome, ConfigScaffolder, ScaffoldOutcome, append_block, scaffold, scaffold_from
from shipyard.scaffold.templates import BLOCK_BEGIN, BLOCK_END


class TestScaffold:
    """Test create-if-absent scaffolding."""

    def test_creates_missing_file(self, tmp_path):
        """Test a missing file is created."""
        dest = tmp_path / "sub" / "file.txt"
        assert scaffold("hello\n", dest) is ScaffoldOutcome.CREATED
        assert dest.read_text() == "hello\n"

    def test_never_overwrites(self, tmp_path):
        """Test an existing file is never overwritten."""
        dest = tmp_path / "file.txt"
        dest.write_text("user edit\n")
        assert scaffold("template\n", dest) is ScaffoldOutcome.SKIPPED_EXISTING
        assert dest.read_text() == "user edit\n"

    def test_unwritable_parent(self, tmp_path):
        """Test an unwritable parent raises ScaffoldError."""
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        with pytest.raises(ScaffoldError):
            scaffold("x", blocker / "child.txt")

    def test_scaffold_from_copies_source(self, tmp_path):
        """Test scaffold_from copies the source file."""
        src = tmp_path / "src"
        src.write_text("A=1\n")
        assert scaffold_from(src, tmp_path / "dest") is ScaffoldOutcome.CREATED
        assert (tmp_path / "dest").read_text() == "A=1\n"

    def test_scaffold_from_missing_source(self, tmp_path):
        """Test scaffold_from with a missing source raises."""
        with pytest.raises(ScaffoldError):
            scaffold_from(tmp_path / "nope", tmp_path / "dest")


class TestAppendBlock:
    """Test the managed block append."""

    def test_appends_once(self, tmp_path):
        """Test the block is appended only once."""
        path = tmp_path / ".gitignore"
        path.write_text("node_modules")
        assert append_block(path, "logs/\n") is AppendOutcome.APPENDED
        assert append_block(path, "logs/\n") is AppendOutcome.ALREADY_PRESENT

        text = path.read_text()
        assert text.startswith("node_modules\n")
        assert text.count(BLOCK_BEGIN) == 1
        assert text.count("logs/") == 1
        assert text.rstrip().endswith(BLOCK_END)

    def test_creates_missing_file(self, tmp_path):
        """Test append_block creates a missing file."""
        path = tmp_path / ".gitignore"
        assert append_block(path, ".env.local\n") is AppendOutcome.APPENDED
        assert BLOCK_BEGIN in path.read_text()


class TestConfigScaffolder:
    """Test project scaffolding."""

    def test_first_run_creates_everything(self, tmp_path):
        """Test the first run creates every file."""
        outcomes = ConfigScaffolder(tmp_path).scaffold_project()
        assert outcomes == {
            ".env.example": ScaffoldOutcome.CREATED,
            ".env.local": ScaffoldOutcome.CREATED,
            ".env.production": ScaffoldOutcome.CREATED,
            ".gitignore": AppendOutcome.APPENDED,
            "next.config.js": ScaffoldOutcome.CREATED,
        }
        assert "output: 'standalone'" in (tmp_path / "next.config.js").read_text()
        assert (tmp_path / ".env.local").read_text() == (tmp_path / ".env.example").read_text()

    def test_second_run_changes_nothing(self, tmp_path):
        """Test a second run changes nothing."""
        scaffolder = ConfigScaffolder(tmp_path)
        scaffolder.scaffold_project()
        (tmp_path / ".env.production").write_text("RABBITMQ_PASSWORD=real\n")
        before = {p.name: p.read_text() for p in tmp_path.iterdir()}

        outcomes = scaffolder.scaffold_project()

        assert set(outcomes.values()) == {ScaffoldOutcome.SKIPPED_EXISTING, AppendOutcome.ALREADY_PRESENT}
        assert {p.name: p.read_text() for p in tmp_path.iterdir()} == before

    def test_env_files_copy_edited_example(self, tmp_path):
        """Test env files copy the edited example."""
        (tmp_path / ".env.example").write_text("PORT=4000\n")
        outcomes = ConfigScaffolder(tmp_path).scaffold_project()
        assert outcomes[".env.example"] is ScaffoldOutcome.SKIPPED_EXISTING
        assert (tmp_path / ".env.production").read_text() == "PORT=4000\n"
