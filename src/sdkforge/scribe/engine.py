"""The scribe engine -- fragment rendering and documentation page synthesis.

A :class:`Scribe` is built once per build from a generator's template
directory, which may contain:

* ``scribe.yml`` -- the description document, mapping fragment paths to
  ``{name, classes: [{className, methods: [{methodArgs: [...]}]}]}``;
* ``scribe-file.j2`` -- the page template used by :meth:`Scribe.create`;
* ``scribe-fragment-<name>.j2`` -- fragment templates used by
  ``((name:path))`` directives in :meth:`Scribe.parse`.

Templates are Jinja2 (``trim_blocks``/``lstrip_blocks``, no autoescape).
Every named transform from :mod:`sdkforge.scribe.transforms` is available
both as a filter and as a callable in the context. ``linkType`` is a filter
that knows the fragment path of the page being rendered. List items of the
description data carry a ``"-last"`` flag marking the final element.

Missing files are not errors: without ``scribe.yml`` or ``scribe-file.j2``
:meth:`Scribe.create` does nothing, and a directive naming an unknown
fragment renders as an empty string.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Callable, Optional

import yaml
from jinja2 import Environment, FileSystemLoader, Template, TemplateError, pass_context
from jinja2.runtime import Context
from pydantic import ValidationError

from sdkforge.exceptions import ScribeError
from sdkforge.models import ApplicationConfig, ScribeDescription, ScribeFragment, dump_scribe
from sdkforge.scribe.directives import expand_fragments, expand_operations
from sdkforge.scribe.transforms import build_transforms, link_type, parent_root_path

logger = logging.getLogger(__name__)

DESCRIPTION_FILE = "scribe.yml"
FILE_TEMPLATE = "scribe-file.j2"
_FRAGMENT_TEMPLATE_RE = re.compile(r"^scribe-fragment-(.+?)\.j2$", re.IGNORECASE)

LAST_MARKER = "-last"


class Scribe:
    """Render scribe fragments and synthesize documentation pages.

    Args:
        template_dir: The generator's ``template/`` directory.
        build_dir: Root of the generated tree (the scratch directory).
        generator_config: Parsed ``config.yml`` of the generator, exposed to
            templates as ``config``.
        application: Application config; binds the config-aware transforms.

    Raises:
        ScribeError: If ``scribe.yml`` exists but is not a valid description,
            or a template in ``template_dir`` does not compile.
    """

    def __init__(
        self,
        template_dir: Path,
        build_dir: Path,
        generator_config: Optional[dict[str, Any]] = None,
        application: Optional[ApplicationConfig] = None,
    ) -> None:
        self.template_dir = Path(template_dir)
        self.build_dir = Path(build_dir)
        self.generator_config = generator_config or {}
        self.transforms = build_transforms(application or ApplicationConfig())
        self.description = _load_description(self.template_dir / DESCRIPTION_FILE)
        self.env = self._create_jinja_env()

        self.file_template: Optional[Template] = None
        self.fragments: dict[str, Template] = {}
        if self.template_dir.is_dir():
            for path in sorted(self.template_dir.iterdir()):
                if not path.is_file():
                    continue
                if path.name == FILE_TEMPLATE:
                    self.file_template = self._load_template(path.name)
                    continue
                match = _FRAGMENT_TEMPLATE_RE.match(path.name)
                if match:
                    self.fragments[match.group(1)] = self._load_template(path.name)

        logger.debug(
            "Scribe loaded %d fragment(s) from %s (description: %s, page template: %s)",
            len(self.fragments),
            self.template_dir,
            "yes" if self.description is not None else "no",
            "yes" if self.file_template is not None else "no",
        )

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def create(self) -> list[Path]:
        """Write a documentation page for every described class that lacks one.

        For each fragment path declaring ``classes``, ``docs/<fragment path>/``
        is created under the build directory, and every class with a
        ``className`` gets ``<className>.md`` rendered from the page template.
        Existing pages are never overwritten.

        Returns:
            The pages written by this call.
        """
        if self.file_template is None or self.description is None:
            return []

        created: list[Path] = []
        for fragment_path, entry in self.description.items():
            if entry.classes is None:
                continue

            doc_dir = self.build_dir / "docs" / fragment_path
            doc_dir.mkdir(parents=True, exist_ok=True)
            entry_data = _entry_data(entry)

            for class_data in entry_data["classes"]:
                class_name = class_data.get("className")
                if not isinstance(class_name, str):
                    continue
                class_path = doc_dir / f"{class_name}.md"
                if class_path.exists():
                    logger.debug("Keeping existing page %s", class_path)
                    continue

                context = self._base_context()
                context.update(
                    parentRootPath=parent_root_path(fragment_path),
                    file=f"docs/{fragment_path}/{class_name}.md",
                    fragment=fragment_path,
                    name=entry.name,
                    classes=class_data,
                    linkType=lambda text, _path=fragment_path: link_type(str(text), _path),
                )
                class_path.write_text(_render_template(self.file_template, context), encoding="utf-8")
                created.append(class_path)
        return created

    def parse(self, text: str, relative_path: str) -> str:
        """Expand scribe directives in *text*.

        Fragment directives are expanded first, over the whole text; the
        operation blocks in the result are expanded second.

        Args:
            text: File contents.
            relative_path: Path of the file relative to the build root,
                exposed to fragments as ``file``.

        Returns:
            The rewritten contents.
        """

        def _render(name: str, fragment_path: str) -> str:
            template = self.fragments.get(name)
            if template is None:
                logger.debug("Unknown scribe fragment %r in %s", name, relative_path)
                return ""
            entry = self.description.get(fragment_path) if self.description is not None else None
            if entry is None:
                logger.debug("No scribe description for %r in %s", fragment_path, relative_path)
            context = self._base_context()
            context.update(
                file=relative_path,
                fragment=fragment_path,
                data=_entry_data(entry) if entry is not None else None,
            )
            return _render_template(template, context)

        return expand_operations(expand_fragments(text, _render), self.transforms)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _base_context(self) -> dict[str, Any]:
        context: dict[str, Any] = {"config": self.generator_config}
        context.update(self.transforms)
        return context

    def _load_template(self, name: str) -> Template:
        try:
            return self.env.get_template(name)
        except TemplateError as exc:
            raise ScribeError(f"Invalid scribe template {self.template_dir / name}: {exc}") from exc

    def _create_jinja_env(self) -> Environment:
        """Create the Jinja2 environment for the generator's scribe templates.

        Rendered output is Markdown or source code, so autoescape is off.
        Every transform is registered as a filter, plus ``linkType``, which
        reads the ``fragment`` variable of the template being rendered.
        """
        env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        for name, transform in self.transforms.items():
            env.filters[name] = _as_filter(transform)
        env.filters["linkType"] = _link_type_filter
        return env


def _render_template(template: Template, context: dict[str, Any]) -> str:
    try:
        return template.render(context)
    except TemplateError as exc:
        raise ScribeError(f"Failed to render scribe template {template.name}: {exc}") from exc


@pass_context
def _link_type_filter(context: Context, value: Any) -> str:
    return link_type(str(value), str(context.get("fragment") or ""))


def _as_filter(transform: Callable[[str], str]) -> Callable[[Any], str]:
    def _filter(value: Any) -> str:
        return transform(str(value))

    return _filter


def _load_description(path: Path) -> Optional[ScribeDescription]:
    """Load ``scribe.yml``; ``None`` when the file does not exist or is empty.

    Raises:
        ScribeError: If the file is not valid YAML or not a description mapping.
    """
    if not path.is_file():
        return None
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ScribeError(f"Invalid scribe description at {path}: {exc}") from exc
    if data is None:
        return None
    try:
        return ScribeDescription.model_validate(data)
    except ValidationError as exc:
        raise ScribeError(f"Invalid scribe description at {path}: {exc}") from exc


def _entry_data(entry: ScribeFragment) -> dict[str, Any]:
    """Dump a description entry for templates, flagging the last list items."""
    data = dump_scribe(entry)
    classes = data.get("classes")
    if isinstance(classes, list):
        _mark_last(classes)
        for class_data in classes:
            methods = class_data.get("methods")
            if isinstance(methods, list):
                _mark_last(methods)
                for method in methods:
                    _mark_last(method.get("methodArgs"))
    return data


def _mark_last(items: Any) -> None:
    if not isinstance(items, list):
        return
    for index, item in enumerate(items):
        if isinstance(item, dict):
            item[LAST_MARKER] = index == len(items) - 1
