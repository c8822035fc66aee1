"""FastAPI entrypoint for the storefront backend.

This package composes the HTTP application: middleware, the lazy MongoDB
connection, the Stripe webhook route and the feature routers mounted from
the deployment's route package.
"""

__version__ = "1.0.0"
