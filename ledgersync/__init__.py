"""Mirror a remote bank's transaction ledger into a local, queryable cache."""

__version__ = "0.1.0"
