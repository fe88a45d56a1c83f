"""
Shared, cross-cutting code for the API.

`core/` holds the small building blocks every feature uses (settings, logging,
DB wiring, schema bootstrap, HTTP middleware). Feature-specific SQL and
business logic live in the feature packages (`tracking/`, `admin/`).
"""
