"""dbhub: tenancy engine for a hosted multi-tenant PostgreSQL platform."""

__version__ = "0.1.0"
