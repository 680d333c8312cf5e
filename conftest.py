"""Global pytest configuration.

Runs before any test module is imported, so the module-level settings
instance is created for the test environment and never reaches for Redis or
Sentry.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
