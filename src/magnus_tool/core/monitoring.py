"""Sentry integration for error tracking and performance monitoring.

Sentry is initialized early in main() after logging setup, and only
when a DSN is provided through MAGNUS_SENTRY_DSN.
"""

import os

import sentry_sdk

from magnus_tool.__about__ import __version__

SENTRY_DSN_ENV = "MAGNUS_SENTRY_DSN"


def setup_sentry(environment: str = "local") -> bool:
    """Initialize Sentry when a DSN is configured.

    Returns True if Sentry was initialized.
    """
    dsn = os.environ.get(SENTRY_DSN_ENV)
    if not dsn:
        return False

    sentry_sdk.init(
        dsn=dsn,
        traces_sample_rate=0.03,
        environment=environment,
        release=__version__,
        attach_stacktrace=True,
        send_default_pii=False,
    )
    return True
