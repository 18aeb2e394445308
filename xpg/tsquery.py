"""Input for PostgreSQL's ``to_tsquery`` function."""

from __future__ import annotations


class TsQuery(str):
    """A text search query string."""

    def raw(self) -> str:
        """Return the query as given."""
        return str.__str__(self)

    def escaped(self) -> str:
        """Return the query with every backslash doubled."""
        return self.raw().replace("\\", "\\\\")

    def __str__(self) -> str:
        return self.raw()