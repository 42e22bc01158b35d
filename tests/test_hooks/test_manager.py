"""Tests for sdkforge.hooks.manager -- hook loading, discovery and execution."""

from __future__ import annotations

import asyncio
import textwrap
from pathlib import Path
from typing import Any

import pytest

from sdkforge.config import ConfigStore, Workspace
from sdkforge.exceptions import HookError, ScribeError
from sdkforge.hooks import BuildHook, CoreHook, HookManager, HookRunner
from sdkforge.hooks.manager import discover_entry_point_hooks, load_generator_hook


HOOK_SOURCE = textwrap.dedent("""\
    from sdkforge.hooks import BuildHook

    class Helper:
        pass

    class PhpHook(BuildHook):
        async def post_build(self):
            pass
""")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class RecordingHook(BuildHook):
    calls: list[str] = []

    async def pre_build(self) -> None:
        self.calls.append(f"{type(self).__name__}.pre_build")

    async def post_build(self) -> None:
        self.calls.append(f"{type(self).__name__}.post_build")


class SecondHook(RecordingHook):
    pass


class ExplodingHook(BuildHook):
    async def pre_build(self) -> None:
        raise RuntimeError("boom")


class ScribeFailingHook(BuildHook):
    async def post_build(self) -> None:
        raise ScribeError("bad description")


class FakeEntryPoint:
    def __init__(self, name: str, target: Any = None, error: Exception | None = None) -> None:
        self.name = name
        self._target = target
        self._error = error

    def load(self) -> Any:
        if self._error is not None:
            raise self._error
        return self._target


class FakeEntryPoints:
    def __init__(self, *entries: FakeEntryPoint) -> None:
        self._entries = list(entries)
        self.groups: list[str] = []

    def select(self, group: str) -> list[FakeEntryPoint]:
        self.groups.append(group)
        return self._entries


@pytest.fixture
def build_args(workspace: Workspace, config_store: ConfigStore, generator_dir: Path, openapi_doc: dict[str, Any]):
    return openapi_doc, workspace.generator_paths("php"), config_store


# ---------------------------------------------------------------------------
# load_generator_hook
# ---------------------------------------------------------------------------


class TestLoadGeneratorHook:
    def test_returns_subclass_defined_in_file(self, tmp_path: Path) -> None:
        hook_file = tmp_path / "php" / "hook.py"
        hook_file.parent.mkdir()
        hook_file.write_text(HOOK_SOURCE, encoding="utf-8")

        cls = load_generator_hook(hook_file)

        assert cls.__name__ == "PhpHook"
        assert issubclass(cls, BuildHook)

    def test_imported_base_class_is_not_picked(self, tmp_path: Path) -> None:
        hook_file = tmp_path / "hook.py"
        hook_file.write_text("from sdkforge.hooks import BuildHook, CoreHook\n", encoding="utf-8")
        with pytest.raises(HookError, match="does not define a BuildHook subclass"):
            load_generator_hook(hook_file)

    def test_import_failure(self, tmp_path: Path) -> None:
        hook_file = tmp_path / "hook.py"
        hook_file.write_text("def broken(:\n", encoding="utf-8")
        with pytest.raises(HookError, match="Failed to import hook file"):
            load_generator_hook(hook_file)

    def test_each_load_reads_the_file_again(self, tmp_path: Path) -> None:
        hook_file = tmp_path / "hook.py"
        hook_file.write_text(HOOK_SOURCE, encoding="utf-8")
        first = load_generator_hook(hook_file)
        hook_file.write_text(HOOK_SOURCE.replace("PhpHook", "RenamedHook"), encoding="utf-8")
        second = load_generator_hook(hook_file)

        assert first.__name__ == "PhpHook"
        assert second.__name__ == "RenamedHook"


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


class TestDiscoverEntryPointHooks:
    def test_keeps_only_loadable_subclasses(self, monkeypatch: pytest.MonkeyPatch) -> None:
        eps = FakeEntryPoints(
            FakeEntryPoint("good", RecordingHook),
            FakeEntryPoint("broken", error=ImportError("no module")),
            FakeEntryPoint("wrong", dict),
        )
        monkeypatch.setattr("importlib.metadata.entry_points", lambda: eps)

        assert discover_entry_point_hooks() == [RecordingHook]
        assert eps.groups == ["sdkforge.hooks"]

    def test_manager_appends_entry_point_hooks(self, build_args, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            "importlib.metadata.entry_points", lambda: FakeEntryPoints(FakeEntryPoint("rec", RecordingHook))
        )
        _, paths, _ = build_args
        assert HookManager().hook_classes(paths) == [CoreHook, RecordingHook]

    def test_entry_points_can_be_disabled(self, build_args, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            "importlib.metadata.entry_points", lambda: FakeEntryPoints(FakeEntryPoint("rec", RecordingHook))
        )
        _, paths, _ = build_args
        assert HookManager(entry_points=False).hook_classes(paths) == [CoreHook]


# ---------------------------------------------------------------------------
# HookManager
# ---------------------------------------------------------------------------


class TestHookManager:
    def test_core_hook_runs_without_hook_file(self, build_args, quiet_output) -> None:
        runner = HookManager(entry_points=False).create(*build_args)
        assert [type(h) for h in runner.hooks] == [CoreHook]

    def test_generator_hook_follows_core(self, build_args, generator_dir: Path, quiet_output) -> None:
        (generator_dir / "hook.py").write_text(HOOK_SOURCE, encoding="utf-8")
        runner = HookManager(entry_points=False).create(*build_args)
        assert [type(h).__name__ for h in runner.hooks] == ["CoreHook", "PhpHook"]

    def test_hooks_share_one_document(self, build_args, generator_dir: Path, quiet_output) -> None:
        (generator_dir / "hook.py").write_text(HOOK_SOURCE, encoding="utf-8")
        openapi, _, _ = build_args
        runner = HookManager(entry_points=False).create(*build_args)
        assert all(h.openapi is openapi for h in runner.hooks)

    def test_generator_hook_alone(self, build_args, generator_dir: Path) -> None:
        (generator_dir / "hook.py").write_text(HOOK_SOURCE, encoding="utf-8")
        hook = HookManager(entry_points=False).generator_hook(*build_args)
        assert type(hook).__name__ == "PhpHook"

    def test_generator_hook_missing(self, build_args) -> None:
        with pytest.raises(HookError, match="has no hook file"):
            HookManager(entry_points=False).generator_hook(*build_args)


# ---------------------------------------------------------------------------
# HookRunner
# ---------------------------------------------------------------------------


class TestHookRunner:
    def test_runs_hooks_in_order(self, build_args) -> None:
        RecordingHook.calls = []
        runner = HookRunner([RecordingHook(*build_args), SecondHook(*build_args)])

        asyncio.run(runner.run_pre_build())
        asyncio.run(runner.run_post_build())

        assert RecordingHook.calls == [
            "RecordingHook.pre_build",
            "SecondHook.pre_build",
            "RecordingHook.post_build",
            "SecondHook.post_build",
        ]

    def test_failure_stops_the_chain_and_names_the_hook(self, build_args) -> None:
        RecordingHook.calls = []
        runner = HookRunner([ExplodingHook(*build_args), RecordingHook(*build_args)])

        with pytest.raises(HookError, match="Hook php:ExplodingHook failed in pre_build: boom"):
            asyncio.run(runner.run_pre_build())
        assert RecordingHook.calls == []

    def test_sdkforge_errors_propagate_unchanged(self, build_args) -> None:
        runner = HookRunner([ScribeFailingHook(*build_args)])
        with pytest.raises(ScribeError, match="bad description"):
            asyncio.run(runner.run_post_build())
