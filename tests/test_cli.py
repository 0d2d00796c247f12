import json
from types import SimpleNamespace

from typer.testing import CliRunner

import jdkcache
import jdkcache.cli as cli
import jdkcache.constants as constants
from conftest import JDK_FILES, asset, build_tar_gz, release
from jdkcache.models import DistributionRequest
from jdkcache.tools import executable_name

runner = CliRunner()

KEY = "LIBERICA_jdk_11.0.2_linux_amd64"
ACQUIRE_ARGS = ["--type", "jdk", "--version", "11.0.2", "--os", "linux", "--arch", "amd64"]


def test_cli_help_invocation():
    result = runner.invoke(cli.app, ["--help"])
    assert result.exit_code == 0
    assert "Usage:" in result.output


def test_cli_version_flag():
    result = runner.invoke(cli.app, ["--version"])
    assert result.exit_code == 0
    assert result.output.strip() == f"jdkcache {jdkcache.__version__}"


def test_cli_without_command_shows_help():
    result = runner.invoke(cli.app, [])
    assert result.exit_code == constants.EXIT_CODE_USAGE
    assert "Commands" in result.output


def test_main_returns_interrupt_code_on_keyboard_interrupt(monkeypatch):
    class FakeCommand:
        def main(self, *args, **kwargs):
            raise KeyboardInterrupt

    monkeypatch.setattr(cli.typer.main, "get_command", lambda _app: FakeCommand())
    assert cli.main(["--help"]) == constants.EXIT_CODE_INTERRUPT


def test_main_returns_interrupt_code_on_abort(monkeypatch):
    class FakeCommand:
        def main(self, *args, **kwargs):
            raise cli.typer.Abort()

    monkeypatch.setattr(cli.typer.main, "get_command", lambda _app: FakeCommand())
    assert cli.main(["--help"]) == constants.EXIT_CODE_INTERRUPT


def test_main_reports_usage_errors():
    assert cli.main(["acquire", "--no-such-flag"]) == constants.EXIT_CODE_USAGE


def test_main_returns_command_exit_code(tmp_path):
    rc = cli.main(["acquire", *ACQUIRE_ARGS, "--offline", "--cache-dir", str(tmp_path)])
    assert rc == constants.EXIT_CODE_FAILURE


def test_acquire_prints_only_the_path(tmp_path, monkeypatch):
    captured = {}

    def fake_acquire(request, ctx):
        captured["request"] = request
        captured["ctx"] = ctx
        return ctx.cache_root / "JDK"

    monkeypatch.setattr(cli, "acquire", fake_acquire)
    result = runner.invoke(
        cli.app,
        ["--quiet", "acquire", *ACQUIRE_ARGS, "--cache-dir", str(tmp_path), "--timeout", "5"],
    )
    assert result.exit_code == 0, result.output
    assert result.output.strip() == str(tmp_path / "JDK")
    assert captured["request"] == DistributionRequest("jdk", "11.0.2", "linux", "amd64")
    assert captured["ctx"].timeout_seconds == 5.0
    assert captured["ctx"].progressbar is False


def test_acquire_uses_config_defaults(tmp_path, monkeypatch):
    config_path = tmp_path / "config" / "config.toml"
    config_path.parent.mkdir(parents=True)
    config_path.write_text(
        f'cache_dir = "{(tmp_path / "cache").as_posix()}"\n'
        "[defaults]\n"
        'type = "jre"\n'
        'version = "17*"\n'
        'arch = "aarch64"\n'
        "keep_archive = true\n",
        encoding="utf-8",
    )
    captured = {}

    def fake_acquire(request, ctx):
        captured["request"] = request
        captured["ctx"] = ctx
        return ctx.cache_root

    monkeypatch.setattr(cli, "acquire", fake_acquire)
    result = runner.invoke(cli.app, ["acquire", "--os", "macos"])
    assert result.exit_code == 0, result.output
    assert captured["request"] == DistributionRequest(
        "jre", "17*", "macos", "aarch64", keep_archive=True
    )
    assert captured["ctx"].cache_root == tmp_path / "cache"


def test_acquire_offline_miss_exits_with_failure(tmp_path):
    result = runner.invoke(
        cli.app, ["acquire", *ACQUIRE_ARGS, "--offline", "--cache-dir", str(tmp_path)]
    )
    assert result.exit_code == constants.EXIT_CODE_FAILURE
    assert "offline mode is active" in result.output


def test_acquire_missing_arch_is_usage_error(tmp_path):
    result = runner.invoke(
        cli.app, ["acquire", "--type", "jdk", "--version", "11", "--cache-dir", str(tmp_path)]
    )
    assert result.exit_code == constants.EXIT_CODE_USAGE
    assert "arch" in result.output


def test_acquire_offline_hit(tmp_path):
    (tmp_path / KEY).mkdir()
    result = runner.invoke(
        cli.app,
        ["--quiet", "acquire", *ACQUIRE_ARGS, "--offline", "--cache-dir", str(tmp_path)],
    )
    assert result.exit_code == 0, result.output
    assert result.output.strip() == str(tmp_path / KEY)


def test_handle_releases_marks_selected(tmp_path, monkeypatch, catalog_server, capsys):
    catalog_server.add_page(
        release(
            "11.0.2",
            [
                asset("bellsoft-jdk11.0.2-linux-amd64.zip"),
                asset("bellsoft-jdk11.0.2-linux-amd64.tar.gz"),
            ],
        )
    )
    ctx = catalog_server.context(tmp_path)
    monkeypatch.setattr(cli, "build_context", lambda args: (ctx, cli.RequestDefaults()))
    args = SimpleNamespace(type="jdk", version="11.0.2", os="linux", arch="amd64", json=False)
    assert cli.handle_releases(args) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("  bellsoft-jdk11.0.2-linux-amd64.zip")
    assert lines[1].startswith("* bellsoft-jdk11.0.2-linux-amd64.tar.gz")


def test_handle_releases_json(tmp_path, monkeypatch, catalog_server, capsys):
    catalog_server.add_page(release("11.0.2", [asset("bellsoft-jdk11.0.2-linux-amd64.zip")]))
    ctx = catalog_server.context(tmp_path)
    monkeypatch.setattr(cli, "build_context", lambda args: (ctx, cli.RequestDefaults()))
    args = SimpleNamespace(type="jdk", version="11*", os="linux", arch="amd64", json=True)
    assert cli.handle_releases(args) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["matches"][0]["selected"] is True
    assert payload["matches"][0]["extension"] == "zip"


def test_releases_refuses_offline(tmp_path, monkeypatch):
    monkeypatch.setenv(constants.OFFLINE_ENV_VAR, "1")
    result = runner.invoke(cli.app, ["releases", *ACQUIRE_ARGS, "--cache-dir", str(tmp_path)])
    assert result.exit_code == constants.EXIT_CODE_FAILURE
    assert "offline" in result.output


def test_acquire_end_to_end_with_mock_catalog(tmp_path, monkeypatch, catalog_server):
    name = "bellsoft-jdk11.0.2-linux-amd64.tar.gz"
    catalog_server.add_page(release("11.0.2", [asset(name)]))
    catalog_server.add_archive(name, build_tar_gz(JDK_FILES))
    ctx = catalog_server.context(tmp_path)
    monkeypatch.setattr(cli, "build_context", lambda args: (ctx, cli.RequestDefaults()))

    result = runner.invoke(cli.app, ["--quiet", "acquire", *ACQUIRE_ARGS])
    assert result.exit_code == 0, result.output
    assert result.output.strip() == str(tmp_path / KEY)
    assert (tmp_path / KEY / "bin" / "jlink").is_file()


def test_which_with_explicit_jdk(tmp_path):
    (tmp_path / "jdk" / "bin").mkdir(parents=True)
    tool = tmp_path / "jdk" / "bin" / executable_name("jlink")
    tool.write_text("", encoding="utf-8")
    result = runner.invoke(cli.app, ["which", "jlink", "--jdk", str(tmp_path / "jdk")])
    assert result.exit_code == 0, result.output
    assert result.output.strip() == str(tool)


def test_which_without_jdk_fails():
    result = runner.invoke(cli.app, ["which", "jlink"])
    assert result.exit_code == constants.EXIT_CODE_USAGE
    assert "JAVA_HOME" in result.output


def test_cache_list_and_path(tmp_path):
    (tmp_path / KEY).mkdir()
    (tmp_path / "unrelated").mkdir()

    result = runner.invoke(cli.app, ["cache", "list", "--cache-dir", str(tmp_path), "--json"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["entries"] == [KEY]

    result = runner.invoke(
        cli.app, ["cache", "path", *ACQUIRE_ARGS, "--cache-dir", str(tmp_path)]
    )
    assert result.exit_code == 0, result.output
    assert result.output.strip() == str(tmp_path / KEY)


def test_auth_token_lifecycle():
    result = runner.invoke(cli.app, ["auth", "status"])
    assert "no GitHub token" in result.output

    result = runner.invoke(cli.app, ["auth", "set-token", "--token", "ghp_abcdefghijkl"])
    assert result.exit_code == 0, result.output
    assert "ghp_...ijkl" in result.output

    result = runner.invoke(cli.app, ["auth", "status"])
    assert "from keyring" in result.output
    assert "ghp_abcdefghijkl" not in result.output

    result = runner.invoke(cli.app, ["auth", "clear-token"])
    assert result.exit_code == 0
    assert "removed" in result.output


def test_auth_set_token_prompts(monkeypatch):
    result = runner.invoke(cli.app, ["auth", "set-token"], input="ghp_prompted123\n")
    assert result.exit_code == 0, result.output
    assert cli.resolve_catalog_token() == "ghp_prompted123"


def test_config_init_and_show(tmp_path):
    result = runner.invoke(cli.app, ["config", "init"])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "config" / "config.toml").is_file()

    result = runner.invoke(cli.app, ["config", "init"])
    assert result.exit_code == constants.EXIT_CODE_USAGE
    assert "already exists" in result.output

    result = runner.invoke(cli.app, ["config", "show", "--json"])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["values"]["catalog_url"] == constants.CATALOG_URL
    assert payload["sources"]["offline"] == "default"
