"""
Tests for source checkout and the build runner.
"""

import pytest

from shipyard.build import BuildRunner
from shipyard.envman import EnvironmentProfile
from shipyard.errors import ArtifactMissing, BuildError, CommandTimeout, EnvProfileError, SourceError
from shipyard.source import SourceFetcher


def produce_standalone(settings):
    def effect(argv):
        standalone = settings.source_path / ".next" / "standalone"
        standalone.mkdir(parents=True)
        (standalone / "server.js").write_text("// server\n")
    return effect


@pytest.fixture
def project(settings):
    settings.source_path.mkdir(parents=True)
    return settings.source_path


@pytest.fixture
def profile(valid_env_text):
    return EnvironmentProfile.parse(valid_env_text)


class TestSourceFetcher:
    """Test source checkout."""

    def test_existing_checkout_untouched(self, settings, runner, project):
        """Test an existing checkout is used as is."""
        assert SourceFetcher(runner, settings).fetch() == project
        assert runner.calls == []

    def test_clones_when_missing(self, settings, runner):
        """Test the repository is cloned when the checkout is absent."""
        SourceFetcher(runner, settings).fetch()
        call = runner.calls[0]
        assert call.argv == ["git", "clone", settings.app.repo_url, str(settings.source_path)]
        assert call.timeout == settings.timeouts.install

    def test_clone_failure(self, settings, runner):
        """Test a failed clone raises SourceError."""
        runner.on("git", "clone", returncode=128, stderr="fatal: repository not found")
        with pytest.raises(SourceError):
            SourceFetcher(runner, settings).fetch()

    def test_no_repo_url(self, settings, runner):
        """Test a missing repository URL raises with a hint."""
        settings.app.repo_url = None
        with pytest.raises(SourceError) as exc:
            SourceFetcher(runner, settings).fetch()
        assert exc.value.hint


class TestResolveEnvFile:
    """Test env file resolution."""

    def test_production_file_used(self, settings, runner, project):
        """Test the production env file is preferred."""
        (project / ".env.production").write_text("A=1\n")
        assert BuildRunner(runner, settings).resolve_env_file() == project / ".env.production"

    def test_falls_back_to_local_copy(self, settings, runner, project):
        """Test the local env file is copied when the production one is missing."""
        (project / ".env.local").write_text("A=local\n")
        env_file = BuildRunner(runner, settings).resolve_env_file()
        assert env_file.read_text() == "A=local\n"

    def test_neither_file(self, settings, runner, project):
        """Test a missing env file raises EnvProfileError."""
        with pytest.raises(EnvProfileError):
            BuildRunner(runner, settings).resolve_env_file()


class TestBuild:
    """Test the build runner."""

    def test_commands_in_order(self, settings, runner, project, profile):
        """Test install, extras and build run in order in the project dir."""
        (project / "yarn.lock").write_text("")
        runner.on("yarn", "build", effect=produce_standalone(settings))

        build_dir = BuildRunner(runner, settings).build(profile)

        assert build_dir == project / ".next"
        assert runner.commands == ["yarn install --frozen-lockfile", "yarn add sharp", "yarn build"]
        assert {c.cwd for c in runner.calls} == {str(project)}
        assert {c.timeout for c in runner.calls} == {settings.timeouts.build}

    def test_build_env_is_explicit(self, settings, runner, project, profile):
        """Test the build gets an explicit production environment."""
        runner.on("yarn", "build", effect=produce_standalone(settings))
        BuildRunner(runner, settings).build(profile)
        env = runner.calls_to("yarn", "build")[0].env
        assert env["NODE_ENV"] == "production"
        assert env["RABBITMQ_USERNAME"] == "scout"

    def test_no_lockfile_no_extras(self, settings, runner, project, profile):
        """Test plain install and no extras without a lockfile."""
        settings.app.extra_packages = []
        runner.on("yarn", "build", effect=produce_standalone(settings))
        BuildRunner(runner, settings).build(profile)
        assert runner.commands == ["yarn install", "yarn build"]

    def test_success_without_output_is_failure(self, settings, runner, project, profile):
        """Test a zero exit without build output fails."""
        with pytest.raises(ArtifactMissing):
            BuildRunner(runner, settings).build(profile)

    def test_missing_standalone_entry(self, settings, runner, project, profile):
        """Test a build dir without the standalone entry fails."""
        runner.on("yarn", "build", effect=lambda argv: (project / ".next").mkdir())
        with pytest.raises(ArtifactMissing) as exc:
            BuildRunner(runner, settings).build(profile)
        assert exc.value.path.endswith("server.js")

    def test_stale_output_does_not_pass(self, settings, runner, project, profile):
        """Output left by the previous deploy is not taken for this build's."""
        stale = project / ".next" / "standalone"
        stale.mkdir(parents=True)
        (stale / "server.js").write_text("// last deploy\n")
        with pytest.raises(ArtifactMissing):
            BuildRunner(runner, settings).build(profile)
        assert not stale.exists()

    def test_rebuild_replaces_previous_output(self, settings, runner, project, profile):
        """Test a fresh build replaces the previous standalone output."""
        stale = project / ".next" / "standalone"
        stale.mkdir(parents=True)
        (stale / "server.js").write_text("// last deploy\n")
        runner.on("yarn", "build", effect=produce_standalone(settings))
        BuildRunner(runner, settings).build(profile)
        assert (stale / "server.js").read_text() == "// server\n"

    def test_build_command_failure(self, settings, runner, project, profile):
        """Test a failing build command raises BuildError."""
        runner.on("yarn", "build", returncode=1, stderr="Type error")
        with pytest.raises(BuildError) as exc:
            BuildRunner(runner, settings).build(profile)
        assert not isinstance(exc.value, ArtifactMissing)

    def test_build_timeout(self, settings, runner, project, profile):
        """Test a timeout stops the build before yarn build."""
        runner.on("yarn", "install", raises=CommandTimeout(["yarn", "install"], 1800))
        with pytest.raises(BuildError) as exc:
            BuildRunner(runner, settings).build(profile)
        assert "timeouts" in exc.value.hint
        assert not runner.ran("yarn", "build")
