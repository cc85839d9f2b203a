# flake8: noqa
import logging
from typing import Any, Dict

from nsnet.cgroup import Cgroup, Controller, Param
from nsnet.config import config_context, get_config, set_config
from nsnet.errors import (
    CommandFailed,
    DuplicatePair,
    InvalidAddress,
    NsnetError,
    PeerNotFound,
    PoolExhausted,
    PreconditionMissing,
    ProcessNotRunning,
)
from nsnet.host import Host, new_host, new_router
from nsnet.link import Link, Links, Pair, Peer, Route, new_link
from nsnet.netns import NetNs, new_netns
from nsnet.node import Node
from nsnet.pool import AddressPool, default_pool
from nsnet.process import Process
from nsnet.scheme import Scheme
from nsnet.switch import Switch, new_switch

from .version import __version__


def init_logging(level=logging.INFO, **kwargs):
    """Enable Rich display of log messages.

    kwargs: kwargs passed to RichHandler.
      nsnet chooses some defaults for you
        show_time=False,
    """
    from rich.logging import RichHandler

    default_kwargs: Dict[str, Any] = dict(
        show_time=False,
    )

    default_kwargs.update(**kwargs)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(**default_kwargs)],
    )

    return logging
