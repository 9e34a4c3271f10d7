"""Process exit codes.

Every run ends with one of these codes so that the invoking shell, and
anyone reading the logs afterwards, can tell an operational failure from
an interruption.
"""

from enum import IntEnum


class ExitCode(IntEnum):
    """Exit codes reported by maintenance routines.

    SYSTEM_UNIT_FAILURE, SECURITY_FAILURE and NETWORK_ERROR are raised by
    collaborators outside this package but flow through the same cleanup.
    UNEXPECTED covers errors no routine anticipated. TRAPPED_SIGNAL is
    deliberately far from the operational codes.
    """

    SUCCESS = 0
    UNEXPECTED = 1
    MISSING_INPUT = 10
    MISSING_FILE = 11
    MISSING_FOLDER = 12
    MISSING_MOUNT = 13
    BAD_CONFIGURATION = 14
    UNSAFE = 15
    SYSTEM_UNIT_FAILURE = 16
    SECURITY_FAILURE = 17
    NETWORK_ERROR = 18
    DRAIN_TIMEOUT = 19
    ALREADY_RUNNING = 20
    TRAPPED_SIGNAL = 99
