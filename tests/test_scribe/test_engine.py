"""Tests for sdkforge.scribe.engine -- page synthesis and directive expansion."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from sdkforge.exceptions import ScribeError
from sdkforge.models import ApplicationConfig
from sdkforge.scribe import Scribe


SCRIBE_YML = textwrap.dedent("""\
    teams:
      name: Teams
      classes:
        - className: TeamsApi
          methods:
            - name: listTeams
              methodArgs:
                - name: page
                - name: size
            - name: getTeam
              methodArgs: []
        - description: no page for this one
    teams/members:
      name: Members
""")


@pytest.fixture
def template_dir(tmp_path: Path) -> Path:
    path = tmp_path / "template"
    path.mkdir()
    (path / "scribe.yml").write_text(SCRIBE_YML, encoding="utf-8")
    (path / "scribe-file.j2").write_text(
        textwrap.dedent("""\
            # {{ classes.className }} ({{ name }})
            root={{ parentRootPath }} file={{ file }}
            {% for method in classes.methods %}
            - {{ method.name | anchorText }}({% for arg in method.methodArgs %}{{ arg.name }}{% if not arg['-last'] %}, {% endif %}{% endfor %})
            {% endfor %}
            type={{ "\\\\Model\\\\Team" | linkType }}
        """),
        encoding="utf-8",
    )
    (path / "scribe-fragment-summary.j2").write_text(
        "{{ data.name if data else 'none' }} in {{ file }} at {{ fragment }}",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def build_dir(tmp_path: Path) -> Path:
    path = tmp_path / "build"
    path.mkdir()
    return path


class TestCreate:
    def test_writes_page_per_named_class(self, template_dir: Path, build_dir: Path) -> None:
        created = Scribe(template_dir, build_dir).create()

        page = build_dir / "docs" / "teams" / "TeamsApi.md"
        assert created == [page]
        content = page.read_text(encoding="utf-8")
        assert content.startswith("# TeamsApi (Teams)\n")
        assert "root=../ file=docs/teams/TeamsApi.md" in content
        assert "- listteams(page, size)" in content
        assert "- getteam()" in content
        assert "type=[**\\Model\\Team**](../../Model/Team)" in content

    def test_existing_page_is_kept(self, template_dir: Path, build_dir: Path) -> None:
        page = build_dir / "docs" / "teams" / "TeamsApi.md"
        page.parent.mkdir(parents=True)
        page.write_text("hand written", encoding="utf-8")

        assert Scribe(template_dir, build_dir).create() == []
        assert page.read_text(encoding="utf-8") == "hand written"

    def test_rerun_after_description_change_adds_only_new_pages(self, template_dir: Path, build_dir: Path) -> None:
        first = Scribe(template_dir, build_dir).create()
        page = build_dir / "docs" / "teams" / "TeamsApi.md"
        assert first == [page]
        page.write_text("reconciled by hand", encoding="utf-8")

        with (template_dir / "scribe.yml").open("a", encoding="utf-8") as handle:
            handle.write("  classes:\n    - className: MembersApi\n      methods: []\n")
        second = Scribe(template_dir, build_dir).create()

        assert second == [build_dir / "docs" / "teams" / "members" / "MembersApi.md"]
        assert page.read_text(encoding="utf-8") == "reconciled by hand"
        assert "root=../../ file=docs/teams/members/MembersApi.md" in second[0].read_text(encoding="utf-8")

    def test_noop_without_page_template(self, template_dir: Path, build_dir: Path) -> None:
        (template_dir / "scribe-file.j2").unlink()
        assert Scribe(template_dir, build_dir).create() == []
        assert not (build_dir / "docs").exists()

    def test_noop_without_description(self, tmp_path: Path, build_dir: Path) -> None:
        empty = tmp_path / "empty"
        empty.mkdir()
        assert Scribe(empty, build_dir).create() == []


class TestParse:
    def test_expands_fragment_with_description(self, template_dir: Path, build_dir: Path) -> None:
        scribe = Scribe(template_dir, build_dir)
        result = scribe.parse("see ((summary:teams/members))!", "Api/TeamsApi.md")
        assert result == "see Members in Api/TeamsApi.md at teams/members!"

    def test_fragment_without_description_gets_no_data(self, template_dir: Path, build_dir: Path) -> None:
        scribe = Scribe(template_dir, build_dir)
        assert scribe.parse("((summary:unknown))", "readme") == "none in readme at unknown"

    def test_unknown_fragment_renders_empty(self, template_dir: Path, build_dir: Path) -> None:
        scribe = Scribe(template_dir, build_dir)
        assert scribe.parse("[((missing:teams))]", "readme") == "[]"

    def test_operations_run_after_fragments(self, template_dir: Path, build_dir: Path) -> None:
        (template_dir / "scribe-fragment-op.j2").write_text(
            "((#anchorText)){{ data.name }} Page((/anchorText))", encoding="utf-8"
        )
        scribe = Scribe(template_dir, build_dir)
        assert scribe.parse("((op:teams))", "readme") == "teams-page"

    def test_operation_uses_bound_config(self, template_dir: Path, build_dir: Path) -> None:
        scribe = Scribe(template_dir, build_dir, application=ApplicationConfig(production=False, local_host="http://dev"))
        assert scribe.parse("((#host))https://api.example.com/v1/x((/host))", "readme") == "http://dev/v1/x"

    def test_generator_config_available_to_fragments(self, template_dir: Path, build_dir: Path) -> None:
        (template_dir / "scribe-fragment-pkg.j2").write_text(
            "{{ config.additionalProperties.invokerPackage }}", encoding="utf-8"
        )
        scribe = Scribe(template_dir, build_dir, generator_config={"additionalProperties": {"invokerPackage": "Acme"}})
        assert scribe.parse("((pkg:teams))", "readme") == "Acme"


class TestDescriptionLoading:
    def test_invalid_yaml_raises(self, template_dir: Path, build_dir: Path) -> None:
        (template_dir / "scribe.yml").write_text("teams: [unclosed", encoding="utf-8")
        with pytest.raises(ScribeError, match="Invalid scribe description"):
            Scribe(template_dir, build_dir)

    def test_wrong_shape_raises(self, template_dir: Path, build_dir: Path) -> None:
        (template_dir / "scribe.yml").write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ScribeError):
            Scribe(template_dir, build_dir)

    def test_broken_fragment_template_raises(self, template_dir: Path, build_dir: Path) -> None:
        (template_dir / "scribe-fragment-broken.j2").write_text("{% if %}x{% endif %}", encoding="utf-8")
        with pytest.raises(ScribeError, match="Invalid scribe template"):
            Scribe(template_dir, build_dir)

    def test_render_error_raises(self, template_dir: Path, build_dir: Path) -> None:
        (template_dir / "scribe-fragment-boom.j2").write_text("{{ data.name.missing.deeper }}", encoding="utf-8")
        scribe = Scribe(template_dir, build_dir)
        with pytest.raises(ScribeError, match="Failed to render"):
            scribe.parse("((boom:teams))", "readme")
