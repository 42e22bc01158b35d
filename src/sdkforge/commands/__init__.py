"""Built-in CLI sub-commands for sdkforge.

* :mod:`~sdkforge.commands.build` -- ``build``, ``develop`` and ``test``,
  registered directly on the root app.
* :mod:`~sdkforge.commands.generators` -- list and scaffold generators.
* :mod:`~sdkforge.commands.config` -- view the application config and
  manage OpenAPI variants.

Every command reads the workspace and the config store that
:func:`~sdkforge.app.main_callback` places in ``ctx.obj``.
"""
