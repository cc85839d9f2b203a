"""
Manage a configuration for nsnet.
"""
import copy
import logging
import signal
from contextlib import contextmanager
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_config = dict(
    default_cidr="10.0.0.0/8",
    output_dir="/tmp",
    enable_forwarding=True,
    stop_signal=signal.SIGINT,
)


def get_config() -> Dict:
    """Get (a copy of) the current config."""
    return copy.deepcopy(_config)


def _set(key: str, value: Optional[Any]):
    if value is not None:
        _config[key] = value


def set_config(
    default_cidr: Optional[str] = None,
    output_dir: Optional[str] = None,
    enable_forwarding: Optional[bool] = None,
    stop_signal: Optional[int] = None,
):
    """Set a specific config value.

    Args:
        default_cidr: network the address pool draws from when it hasn't
            been seeded explicitly (e.g. ``10.0.0.0/8``)
        output_dir: directory where the output files of the supervised
            processes are written
        enable_forwarding: turn on ip forwarding on hosts with more than one
            link when they are brought up
        stop_signal: signal sent to a supervised process to stop it
    """
    _set("default_cidr", default_cidr)
    _set("output_dir", output_dir)
    _set("enable_forwarding", enable_forwarding)
    _set("stop_signal", stop_signal)

    logger.debug("config = %s", get_config())


@contextmanager
def config_context(**new_config):
    """A context manager to manage a config specific to a portion of code.

    The previous config is restored when exiting the context manager.

    Args:
        new_config: any keyword argument supported by
            :py:func:`~nsnet.config.set_config`

    Examples:

        .. code-block:: python

            from nsnet.config import config_context

            ...
            with config_context(default_cidr="192.168.0.0/24"):
                scheme.recover()

            # the config goes back to its previous state here
    """
    old_config = get_config()
    set_config(**new_config)
    try:
        yield
    finally:
        set_config(**old_config)
