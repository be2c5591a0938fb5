"""Buildgate - build resolution for deploys.

Makes sure every container image a deploy depends on has been built
successfully before the deploy proceeds: finds reusable builds, creates the
missing ones, waits for them and validates the results.
"""

__version__ = "0.1.0"
