from __future__ import annotations

import pytest

from skyrunner.bootstrap import (
    HEADER,
    bootstrap,
    cd,
    env_export,
    file,
    resolve,
    run_as,
    runner_user_data,
    user_data_builder,
)
from skyrunner.config import GitHubConfig, RunnerSpec
from skyrunner.types import RegistrationToken

pytestmark = [pytest.mark.unit, pytest.mark.xdist_group("unit")]

GITHUB = GitHubConfig(token="ghp", owner="acme", repo="widgets")
TOKEN = RegistrationToken("AABBCC")


class TestCompose:
    def test_resolve_nested(self):
        assert resolve(["a", lambda: "b", ["c", None]]) == "a\nb\nc\n"

    def test_bootstrap_skips_none(self):
        script = bootstrap("echo 1", None, cd("/opt"), header="#!/bin/sh\n")
        assert script == "#!/bin/sh\necho 1\ncd /opt"

    def test_default_header_logs_user_data(self):
        assert HEADER.startswith("#!/bin/bash\n")
        assert "/var/log/user-data.log" in HEADER


class TestOps:
    def test_file_uses_quoted_heredoc(self):
        assert file("pre.sh", "echo $HOME")() == (
            "cat > pre.sh << 'SKYRUNNER_EOF'\necho $HOME\nSKYRUNNER_EOF"
        )

    def test_file_delimiter_avoids_content_lines(self):
        content = "echo start\nSKYRUNNER_EOF\nSKYRUNNER_EOF_1\necho end"
        script = file("pre.sh", content)()

        assert script.startswith("cat > pre.sh << 'SKYRUNNER_EOF_2'\n")
        assert script.endswith(f"\n{content}\nSKYRUNNER_EOF_2")

    def test_env_export(self):
        assert env_export(A="1", B="2")() == 'export A="1"\nexport B="2"'

    def test_run_as(self):
        assert run_as(None, "./run.sh")() == "./run.sh"
        assert run_as("ubuntu", "./run.sh")() == "su ubuntu -c ./run.sh"


class TestRunnerUserData:
    def test_download_mode(self):
        script = runner_user_data(RunnerSpec(), GITHUB, TOKEN, "abc123")

        assert script.startswith(HEADER)
        assert "mkdir -p actions-runner && cd actions-runner" in script
        assert "actions/runner/releases/download/v2.325.0/" in script
        assert "tar xzf" in script
        assert "export RUNNER_ALLOW_RUNASROOT=\"1\"" in script
        assert (
            "./config.sh --url https://github.com/acme/widgets --token AABBCC "
            "--labels abc123 --name skyrunner-abc123 --unattended"
        ) in script
        assert script.rstrip().endswith("./run.sh")

    def test_enterprise_server_url(self):
        github = GitHubConfig(
            token="ghp",
            owner="acme",
            repo="widgets",
            api_url="https://ghe.corp/api/v3",
            server_url="https://ghe.corp/",
        )
        script = runner_user_data(RunnerSpec(), github, TOKEN, "abc123")

        assert "./config.sh --url https://ghe.corp/acme/widgets --token" in script
        assert "https://github.com/acme" not in script

    def test_preinstalled_mode_skips_download(self):
        spec = RunnerSpec(home_dir="/opt/actions-runner")
        script = runner_user_data(spec, GITHUB, TOKEN, "abc123")

        assert "cd /opt/actions-runner" in script
        assert "curl" not in script

    def test_pre_runner_script_runs_before_config(self):
        spec = RunnerSpec(pre_runner_script="apt-get install -y jq")
        script = runner_user_data(spec, GITHUB, TOKEN, "abc123")

        assert script.index("apt-get install -y jq") < script.index("source pre-runner-script.sh")
        assert script.index("source pre-runner-script.sh") < script.index("./config.sh")

    def test_service_mode_as_user(self):
        spec = RunnerSpec(run_as_service=True, run_as_user="ubuntu", name="ci-box")
        script = runner_user_data(spec, GITHUB, TOKEN, "abc123")

        assert "--name ci-box" in script
        assert "chown -R ubuntu ." in script
        assert "./svc.sh install ubuntu\n./svc.sh start" in script
        assert "./run.sh" not in script

    def test_foreground_as_user(self):
        spec = RunnerSpec(run_as_user="ubuntu")
        script = runner_user_data(spec, GITHUB, TOKEN, "abc123")
        assert script.rstrip().endswith("su ubuntu -c ./run.sh")

    def test_builder_binds_static_parts(self):
        build = user_data_builder(RunnerSpec(), GITHUB)
        assert build(TOKEN, "abc123") == runner_user_data(RunnerSpec(), GITHUB, TOKEN, "abc123")
