"""Application package for the Noodle learning-management backend.

The package is organised the usual way for a small FastAPI service:
`models` (tables), `repositories` (persistence coordinator and typed
lookups), `tokens` and `permissions` (session and authorization core),
`services` (business operations) and `main` (HTTP controllers).
"""
