"""Diagnostic logging setup.

All maintenance routines log through the standard ``logging`` module.
The CLI installs one Rich handler on stderr whose messages carry the run
stamp, so log post-mortems show which host and day produced each line.
"""

import logging

from rich.logging import RichHandler

from dailyctl.utils.formatting import err_console

_HANDLER_NAME = "dailyctl-stderr"


def configure_logging(stamp: str, verbose: bool = False) -> logging.Handler:
    """Attach the stamped stderr handler to the ``dailyctl`` logger.

    Calling this again replaces the previous handler instead of adding a
    second one.

    Args:
        stamp: Run label, see :func:`dailyctl.utils.naming.make_stamp`.
        verbose: Log DEBUG messages when True, INFO otherwise.

    Returns:
        The installed handler.
    """
    root = logging.getLogger("dailyctl")
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)

    handler = RichHandler(
        console=err_console,
        show_path=False,
        markup=False,
        rich_tracebacks=verbose,
    )
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(f"{stamp}: %(message)s"))

    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    return handler
