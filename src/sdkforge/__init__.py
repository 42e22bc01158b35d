"""sdkforge -- Build multi-language SDKs from a single OpenAPI document.

The package drives an external OpenAPI code generator once per target
language and keeps a stable output tree in sync with the generator's
scratch output. Around the generator it adds three steps of its own:

1. The OpenAPI document is *morphed* into a generator-friendly shape
   (deprecated operations removed, ``oneOf`` request bodies fanned out
   into distinct operations).
2. The generated documentation and sources are post-processed by the
   *scribe*, a small directive language backed by Jinja2 fragments and a
   registry of named string transforms.
3. The scratch tree is reconciled with ``out/<generator>`` through a
   content-hash three-way sync, so watch-mode rebuilds only touch files
   that changed.

Typical workflow::

    sdkforge generators init php    # scaffold generators/php
    sdkforge build php              # one-shot build into out/php
    sdkforge develop php            # rebuild on every change

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: Workspace layout, application config and OpenAPI variants.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes.
    output: stdout/stderr formatting with Rich support.
    sync: Content-hash directory synchronisation.
    watcher: Polling file watcher and the development watch loop.
"""

__version__ = "0.3.0"
