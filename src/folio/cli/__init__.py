"""Folio command-line interface (``folio``)."""
