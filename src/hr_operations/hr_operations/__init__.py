"""HR Operations package.

Feature modules (roles, leave, requests, attendance, reconciliation, users)
each own a model, a repository Protocol, a MySQL adapter and a service.
Controllers are a thin Flask layer over the services.
"""
