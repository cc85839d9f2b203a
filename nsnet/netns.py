"""Network namespaces, driven through ``ip netns``."""
import logging
from typing import List

from nsnet.errors import CommandFailed
from nsnet.utils import run_command

logger = logging.getLogger(__name__)


def list_netns() -> List[str]:
    """Names of the existing network namespaces.

    ``ip netns list`` prints lines like ``h1 (id: 0)``.
    """
    out = run_command("ip", "netns", "list")
    return [line.split()[0] for line in out.splitlines() if line.strip()]


def identify(pid: int) -> str:
    """Name of the namespace a process belongs to.

    Old versions of iproute2 don't support the ``identify`` command, an
    empty name is returned in this case (as for the root namespace).
    """
    try:
        out = run_command("ip", "netns", "identify", str(pid))
    except CommandFailed as e:
        logger.error(e)
        return ""
    return out.strip()


class NetNs:
    """A named network namespace.

    Args:
        name: name of the namespace (``/var/run/netns/<name>``)
    """

    def __init__(self, name: str):
        self._name = name

    def __repr__(self):
        return f"NetNs({self._name})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, NetNs):
            return NotImplemented
        return self._name == other._name

    def __hash__(self):
        return hash(self._name)

    @property
    def name(self) -> str:
        return self._name

    def create(self):
        run_command("ip", "netns", "add", self._name)

    def exists(self) -> bool:
        try:
            return self._name in list_netns()
        except CommandFailed as e:
            # can't tell, don't try to create it again
            logger.error(e)
            return True

    def ensure(self) -> "NetNs":
        if not self.exists():
            self.create()
        return self

    def release(self):
        if not self._name:
            return
        run_command("ip", "netns", "delete", self._name)


def new_netns(name: str) -> NetNs:
    """Get a namespace, creating it if it doesn't exist yet."""
    return NetNs(name).ensure()
