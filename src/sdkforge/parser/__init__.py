"""OpenAPI document handling -- loading and morphing.

This sub-package prepares the OpenAPI document that is handed to the
external generator:

* :mod:`~sdkforge.parser.loader` -- reads a document from a file, a URL or
  stdin, detecting JSON or YAML.
* :mod:`~sdkforge.parser.morpher` -- rewrites the document in place into a
  generator-friendly shape.
* :mod:`~sdkforge.parser.lint` -- checks the HTML in operation
  descriptions.

Typical usage::

    from sdkforge.parser import load_document, morph

    doc = load_document("config/openapi.json")
    morph(doc)
"""

from sdkforge.parser.loader import load_document
from sdkforge.parser.morpher import morph

__all__ = ["load_document", "morph"]
