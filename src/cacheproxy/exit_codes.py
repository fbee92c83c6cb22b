"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~cacheproxy.exceptions.CacheProxyError` subclass.
Process supervisors can inspect the exit code to tell a configuration
mistake from a port that could not be bound without parsing stderr.

Example::

    $ cacheproxy serve
    $ echo $?
    2   # EXIT_CONFIG_ERROR -- no upstream target was configured
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_CONFIG_ERROR = 2
"""Configuration was missing or invalid (e.g. no upstream target)."""

EXIT_SERVER_START_ERROR = 3
"""The listening socket could not be opened."""

EXIT_FORWARD_ERROR = 4
"""A request could not be forwarded to the upstream."""
