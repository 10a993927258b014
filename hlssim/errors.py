class NotFound(Exception):
    """The requested rendition, segment or playlist does not exist (yet)."""


class CatalogError(ValueError):
    """A rendition definition is unusable."""
