"""relpub - release publisher for organization-scoped npm repositories."""

__version__ = "0.3.0"
