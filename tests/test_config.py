"""Tests for sdkforge.config -- workspace layout, atomic writes, config store, variants."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx
import pytest

from sdkforge.config import (
    ConfigStore,
    Workspace,
    _atomic_write,
    copy_variant,
    delete_variant,
    fetch_openapi,
    list_variants,
    load_generator_config,
    normalize_variant_name,
    poll_openapi,
    read_variant,
    resolve_workspace,
    switch_variant,
)
from sdkforge.exceptions import ConfigError, InvalidUsageError
from sdkforge.models import ApplicationConfig


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    """Write a dict as JSON to *path*, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def _client(documents: dict[str, Any]) -> httpx.Client:
    """An httpx client answering from *documents* keyed by URL path."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path not in documents:
            return httpx.Response(404, text="not found")
        body = documents[request.url.path]
        if isinstance(body, str):
            return httpx.Response(200, text=body)
        return httpx.Response(200, json=body)

    return httpx.Client(transport=httpx.MockTransport(handler))


DOC = {"openapi": "3.0.3", "info": {"title": "Live", "version": "2"}, "paths": {}}
DEV_DOC = {"openapi": "3.0.3", "info": {"title": "Dev", "version": "2"}, "paths": {}}


# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------


class TestWorkspace:
    def test_layout(self, tmp_path: Path) -> None:
        ws = Workspace(tmp_path, tmp_dir=tmp_path / "scratch")
        assert ws.config_dir == tmp_path / "config"
        assert ws.application_file == tmp_path / "config" / "application.json"
        assert ws.generators_dir == tmp_path / "generators"
        assert ws.activity_log == tmp_path / "out" / "activity.log"
        assert ws.variant_file("dev") == tmp_path / "config" / "openapi-dev.json"

    def test_generator_paths(self, tmp_path: Path) -> None:
        paths = Workspace(tmp_path, tmp_dir=tmp_path / "scratch").generator_paths("php")
        assert paths.template_dir == tmp_path / "generators" / "php" / "template"
        assert paths.hook_file == tmp_path / "generators" / "php" / "hook.py"
        assert paths.output_dir == tmp_path / "out" / "php"
        assert paths.scratch_dir == tmp_path / "scratch" / "php"
        assert paths.openapi_file == tmp_path / "scratch" / "openapi-php.json"

    def test_default_tmp_dir_under_system_temp(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("tempfile.tempdir", str(tmp_path / "systmp"))
        assert Workspace(tmp_path).tmp_dir == tmp_path / "systmp" / "sdkforge"

    def test_resolve_relative_and_absolute(self, tmp_path: Path) -> None:
        ws = Workspace(tmp_path)
        assert ws.resolve("res/gen.jar") == tmp_path / "res" / "gen.jar"
        assert ws.resolve("/opt/gen.jar") == Path("/opt/gen.jar")


class TestResolveWorkspace:
    def test_flag_wins(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SDKFORGE_ROOT", str(tmp_path / "env"))
        assert resolve_workspace(str(tmp_path / "flag")).root == tmp_path / "flag"

    def test_env_var(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SDKFORGE_ROOT", str(tmp_path / "env"))
        assert resolve_workspace().root == tmp_path / "env"

    def test_cwd_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SDKFORGE_ROOT", raising=False)
        monkeypatch.chdir(tmp_path)
        assert resolve_workspace().root == tmp_path.resolve()


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_creates_parents_and_writes(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b" / "file.json"
        _atomic_write(target, "{}")
        assert target.read_text(encoding="utf-8") == "{}"

    def test_no_temp_files_left_behind(self, tmp_path: Path) -> None:
        target = tmp_path / "file.json"
        _atomic_write(target, "one")
        _atomic_write(target, "two")
        assert [p.name for p in tmp_path.iterdir()] == ["file.json"]
        assert target.read_text(encoding="utf-8") == "two"


# ---------------------------------------------------------------------------
# ConfigStore
# ---------------------------------------------------------------------------


class TestApplicationConfig:
    def test_reads_camel_case_keys(self, config_store: ConfigStore) -> None:
        app = config_store.application()
        assert app.log_level == "debug"
        assert app.schema_mappings == {"Inline_1": "Payload"}
        assert app.production is False

    def test_snapshot_is_cached_until_reload(self, config_store: ConfigStore, workspace: Workspace) -> None:
        first = config_store.application()
        _write_json(workspace.application_file, {"logLevel": "error"})
        assert config_store.application() is first
        assert config_store.reload().log_level == "error"

    def test_missing_file_restored_from_sample(self, workspace: Workspace) -> None:
        _write_json(workspace.application_sample, {"logLevel": "warn", "production": True})
        app = ConfigStore(workspace).application()
        assert app.log_level == "warn"
        assert workspace.application_file.is_file()

    def test_missing_file_and_sample_writes_defaults(self, workspace: Workspace) -> None:
        app = ConfigStore(workspace).application()
        assert app.log_level == "info"
        assert app.production is False
        data = json.loads(workspace.application_file.read_text(encoding="utf-8"))
        assert data["logLevel"] == "info"
        assert "schemaMappings" in data

    def test_malformed_file_restored(self, workspace: Workspace, quiet_output) -> None:
        workspace.application_file.write_text("{not json", encoding="utf-8")
        _write_json(workspace.application_sample, {"logLevel": "error"})
        assert ConfigStore(workspace).application().log_level == "error"

    def test_invalid_sample_raises(self, workspace: Workspace) -> None:
        workspace.application_file.write_text("[]", encoding="utf-8")
        _write_json(workspace.application_sample, {"logLevel": "loud"})
        with pytest.raises(ConfigError, match="Invalid application config"):
            ConfigStore(workspace).application()

    def test_save_round_trips_aliases(self, workspace: Workspace) -> None:
        store = ConfigStore(workspace)
        store.save_application(ApplicationConfig(api_key="k", schema_mappings={"A": "B"}))
        data = json.loads(workspace.application_file.read_text(encoding="utf-8"))
        assert data["apiKey"] == "k"
        assert data["schemaMappings"] == {"A": "B"}
        assert store.application().api_key == "k"


class TestOpenApiDocument:
    def test_loads_active_document(self, config_store: ConfigStore) -> None:
        assert config_store.openapi()["info"]["title"] == "Pets"

    def test_restored_from_sample(self, workspace: Workspace) -> None:
        _write_json(workspace.openapi_sample, DOC)
        assert ConfigStore(workspace).openapi()["info"]["title"] == "Live"
        assert workspace.openapi_file.is_file()

    def test_missing_everything(self, workspace: Workspace) -> None:
        with pytest.raises(ConfigError, match="No OpenAPI document"):
            ConfigStore(workspace).openapi()

    def test_malformed(self, workspace: Workspace) -> None:
        workspace.openapi_file.write_text("{", encoding="utf-8")
        with pytest.raises(ConfigError, match="malformed"):
            ConfigStore(workspace).openapi()

    def test_not_an_object(self, workspace: Workspace) -> None:
        workspace.openapi_file.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ConfigError, match="not a JSON object"):
            ConfigStore(workspace).openapi()


class TestGeneratorConfig:
    def test_loads_mapping(self, generator_dir: Path) -> None:
        data = load_generator_config(generator_dir / "config.yml")
        assert data["additionalProperties"]["theGitUserId"] == "acme"

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yml"
        path.write_text("", encoding="utf-8")
        assert load_generator_config(path) == {}

    def test_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_generator_config(tmp_path / "config.yml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yml"
        path.write_text("a: [b", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid generator config"):
            load_generator_config(path)

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yml"
        path.write_text("- a\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="must be a mapping"):
            load_generator_config(path)


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------


class TestVariantNames:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [("dev", "dev"), ("Staging", "staging"), ("a--b", "a-b"), ("v2_beta", "v2_beta"), ("x", "x")],
    )
    def test_valid(self, name: str, expected: str) -> None:
        assert normalize_variant_name(name) == expected

    @pytest.mark.parametrize("name", ["", "-dev", "dev-", "a b", "../etc", "dev.json"])
    def test_invalid(self, name: str) -> None:
        with pytest.raises(InvalidUsageError, match="Invalid configuration name"):
            normalize_variant_name(name)


class TestVariants:
    def test_list_marks_active(self, config_store: ConfigStore, workspace: Workspace) -> None:
        workspace.variant_file("pets").write_bytes(workspace.openapi_file.read_bytes())
        _write_json(workspace.variant_file("live"), DOC)
        (workspace.config_dir / "openapi-bad name.json").write_text("{}", encoding="utf-8")

        assert list_variants(workspace) == [("live", False), ("pets", True)]

    def test_list_without_config_dir(self, tmp_path: Path) -> None:
        assert list_variants(Workspace(tmp_path)) == []

    def test_switch(self, config_store: ConfigStore, workspace: Workspace) -> None:
        _write_json(workspace.variant_file("live"), DOC)
        switch_variant(workspace, "live")
        assert config_store.openapi()["info"]["title"] == "Live"
        assert list_variants(workspace) == [("live", True)]

    def test_switch_unknown_lists_known(self, workspace: Workspace) -> None:
        _write_json(workspace.variant_file("live"), DOC)
        with pytest.raises(InvalidUsageError, match=r"Unknown configuration 'nope' \(available: live\)"):
            switch_variant(workspace, "nope")

    def test_copy_normalizes_target(self, workspace: Workspace) -> None:
        _write_json(workspace.variant_file("live"), DOC)
        dest = copy_variant(workspace, "live", "Live--Copy")
        assert dest == workspace.variant_file("live-copy")
        assert json.loads(dest.read_text(encoding="utf-8")) == DOC

    def test_delete(self, workspace: Workspace) -> None:
        _write_json(workspace.variant_file("live"), DOC)
        delete_variant(workspace, "live")
        assert not workspace.variant_file("live").exists()
        with pytest.raises(InvalidUsageError):
            delete_variant(workspace, "live")


class TestFetchOpenApi:
    def _config(self) -> ApplicationConfig:
        return ApplicationConfig(
            fetch_url="http://api.test/openapi.json",
            fetch_dev_url="http://api.test/openapi-dev.json",
        )

    def test_writes_variant_and_active_document(self, workspace: Workspace) -> None:
        updated = fetch_openapi(workspace, self._config(), client=_client({"/openapi.json": DOC}))

        assert updated == [workspace.variant_file("sample"), workspace.openapi_file]
        assert json.loads(workspace.openapi_file.read_text(encoding="utf-8")) == DOC

    def test_unchanged_document_is_not_rewritten(self, workspace: Workspace) -> None:
        client = _client({"/openapi.json": DOC})
        fetch_openapi(workspace, self._config(), client=client)
        assert fetch_openapi(workspace, self._config(), client=client) == []

    def test_dev_mode_activates_dev_document(self, workspace: Workspace) -> None:
        client = _client({"/openapi.json": DOC, "/openapi-dev.json": DEV_DOC})
        fetch_openapi(workspace, self._config(), name="live", dev=True, client=client)

        assert json.loads(workspace.variant_file("live").read_text(encoding="utf-8")) == DOC
        assert json.loads(workspace.openapi_file.read_text(encoding="utf-8")) == DEV_DOC

    def test_http_error(self, workspace: Workspace) -> None:
        with pytest.raises(ConfigError, match="Failed to fetch"):
            fetch_openapi(workspace, self._config(), client=_client({}))

    def test_non_json_response(self, workspace: Workspace) -> None:
        with pytest.raises(ConfigError, match="Invalid server response"):
            fetch_openapi(workspace, self._config(), client=_client({"/openapi.json": "<html>"}))

    def test_not_an_openapi_document(self, workspace: Workspace) -> None:
        with pytest.raises(ConfigError, match="Not an OpenAPI document"):
            fetch_openapi(workspace, self._config(), client=_client({"/openapi.json": {"swagger": "2.0"}}))

    def test_invalid_variant_name_fetches_nothing(self, workspace: Workspace) -> None:
        with pytest.raises(InvalidUsageError):
            fetch_openapi(workspace, self._config(), name="bad name", client=_client({"/openapi.json": DOC}))
        assert not workspace.openapi_file.exists()


class TestReadVariant:
    def test_reads_stored_document(self, workspace: Workspace) -> None:
        _write_json(workspace.variant_file("live"), DOC)
        assert read_variant(workspace, "live") == DOC

    def test_unknown_variant(self, workspace: Workspace) -> None:
        with pytest.raises(InvalidUsageError, match="Unknown configuration 'nope'"):
            read_variant(workspace, "nope")

    def test_malformed_variant(self, workspace: Workspace) -> None:
        workspace.variant_file("broken").write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="openapi-broken.json"):
            read_variant(workspace, "broken")


class TestPollOpenApi:
    def test_reports_changes_and_sleeps_between_polls(self, config_store: ConfigStore, workspace: Workspace) -> None:
        sleeps: list[float] = []
        client = _client({"/openapi.json": DOC, "/openapi-dev.json": DEV_DOC})

        changed = poll_openapi(config_store, max_polls=3, client=client, sleep=sleeps.append)

        assert changed == 1
        assert sleeps == [2.0, 2.0]
        assert json.loads(workspace.variant_file("sample").read_text(encoding="utf-8")) == DOC
        assert json.loads(workspace.openapi_file.read_text(encoding="utf-8")) == DEV_DOC

    def test_failed_fetch_retries_sooner(self, config_store: ConfigStore, workspace: Workspace) -> None:
        calls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            if len(calls) == 1:
                return httpx.Response(503, text="starting up")
            body = DEV_DOC if request.url.path == "/openapi-dev.json" else DOC
            return httpx.Response(200, json=body)

        sleeps: list[float] = []
        client = httpx.Client(transport=httpx.MockTransport(handler))
        changed = poll_openapi(config_store, "live", max_polls=3, client=client, sleep=sleeps.append)

        assert changed == 1
        assert sleeps == [1.0, 2.0]
        assert workspace.variant_file("live").is_file()

    def test_config_reloaded_before_each_fetch(self, config_store: ConfigStore, workspace: Workspace) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.host)
            return httpx.Response(200, json=DOC)

        def switch_host(_delay: float) -> None:
            _write_json(workspace.application_file, {"fetchUrl": "http://other.test/openapi.json"})

        client = httpx.Client(transport=httpx.MockTransport(handler))
        poll_openapi(config_store, max_polls=2, client=client, sleep=switch_host)

        assert seen[0] == "localhost"
        assert "other.test" in seen[2:]

    def test_invalid_name_rejected_before_fetching(self, config_store: ConfigStore) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("must not fetch")

        client = httpx.Client(transport=httpx.MockTransport(handler))
        with pytest.raises(InvalidUsageError):
            poll_openapi(config_store, "bad name", max_polls=1, client=client)
