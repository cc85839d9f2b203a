"""
Links are the ends of the emulated cables.

A :py:class:`Link` is one end of a connection, owned by a node. The two ends
of a connection are built together by :py:func:`new_link` as a
:py:class:`Pair`, so that each end can point at the other one. The pointer
is a :py:class:`Peer`: a (node name, interface name) key looked up in the
:py:class:`~nsnet.scheme.Scheme` when needed, never a reference to the other
object.

Two kinds of pairs exist:

- veth pairs, for any connection involving a host. Both ends get an address
  and a MAC address from the pool, and live in the namespace of their node.
- patch pairs, between two switches. No address, no namespace: the ends are
  realized as OVS patch ports (see :py:meth:`~nsnet.switch.Switch.add_patch_port`).
"""
import copy
import logging
from dataclasses import dataclass, field
from ipaddress import ip_interface
from typing import TYPE_CHECKING, Dict, List, Optional

from nsnet.constants import (
    ETH_PREFIX,
    PATCH_PREFIX,
    ROOT_NETNS,
    STATE_DOWN,
    STATE_UP,
    SWITCH,
    VETH_PREFIX,
)
from nsnet.errors import CommandFailed, NsnetError
from nsnet.pool import AddressPool, default_pool
from nsnet.utils import first_real_hwaddr, run_command

if TYPE_CHECKING:
    from nsnet.node import Node

logger = logging.getLogger(__name__)


@dataclass
class Route:
    dst: str
    gw: str

    def to_dict(self) -> Dict:
        return {"Dst": self.dst, "Gw": self.gw}

    @classmethod
    def from_dict(cls, d: Dict) -> "Route":
        return cls(dst=d["Dst"], gw=d["Gw"])


@dataclass
class Peer:
    """Lookup key of the other end of a link."""

    name: str = ""
    if_name: str = ""
    node_name: str = ""

    def to_dict(self) -> Dict:
        return {"Name": self.name, "IfName": self.if_name, "NodeName": self.node_name}

    @classmethod
    def from_dict(cls, d: Dict) -> "Peer":
        return cls(
            name=d.get("Name", ""),
            if_name=d.get("IfName", ""),
            node_name=d.get("NodeName", ""),
        )


@dataclass
class Link:
    """One end of a connection.

    Empty fields are filled by :py:func:`new_link`. A link with a namespace
    is named ``veth<N>``, a link in the root namespace is named
    ``<node>-<prefix><N>`` where N is the position of the link in its node.

    ``force_root`` prevents two switches to be connected through patch
    ports. It isn't persisted.
    """

    cidr: str = ""
    hw_addr: str = ""
    name: str = ""
    node_name: str = ""
    netns: str = ""
    state: str = STATE_DOWN
    routes: List[Route] = field(default_factory=list)
    peer_name: str = ""
    peer: Peer = field(default_factory=Peer)
    patch: bool = False
    force_root: bool = field(default=False, compare=False)

    # builders, they only fill what's missing

    def set_cidr(self, pool: AddressPool) -> "Link":
        if self.cidr == "":
            self.cidr = pool.next_cidr()
        return self

    def set_hw_addr(self, pool: AddressPool) -> "Link":
        if self.hw_addr == "":
            self.hw_addr = pool.next_mac(first_real_hwaddr())
        return self

    def set_name(self, node: "Node", prefix: str) -> "Link":
        if self.name != "":
            return self
        if self.netns != "":
            self.name = f"{VETH_PREFIX}{node.links_count()}"
        else:
            self.name = f"{node.node_name}-{prefix}{node.links_count()}"
        return self

    def set_node_name(self, node: "Node") -> "Link":
        if self.node_name == "":
            self.node_name = node.node_name
        return self

    def set_netns(self, node: "Node") -> "Link":
        if self.netns == ROOT_NETNS:
            self.netns = ""
            return self
        netns = node.netns()
        if self.netns == "" and netns is not None:
            self.netns = netns.name
        return self

    def set_state(self, state: str) -> "Link":
        self.state = state
        return self

    def set_peer(self, other: "Link") -> "Link":
        self.peer = Peer(name=other.name, if_name=other.name, node_name=other.node_name)
        return self

    def set_patch(self) -> "Link":
        if not self.force_root:
            self.patch = True
        return self

    # OS side

    def _command(self, *args: str) -> List[str]:
        if self.netns:
            return ["ip", "netns", "exec", self.netns] + list(args)
        return list(args)

    def _run(self, *args: str) -> str:
        command = self._command(*args)
        return run_command(command[0], *command[1:])

    @property
    def ip(self) -> str:
        try:
            return str(ip_interface(self.cidr).ip)
        except ValueError:
            return ""

    def exists(self) -> bool:
        try:
            self._run("ip", "link", "show", self.name)
        except CommandFailed:
            return False
        return True

    def up(self):
        self._run("ip", "link", "set", self.name, "up")
        self.state = STATE_UP

    def apply_mac(self):
        self._run("ip", "link", "set", "dev", self.name, "address", self.hw_addr)

    def apply_cidr(self):
        """Set the address of the link.

        A link without a valid cidr is left unaddressed.
        """
        if "/" not in self.cidr:
            return
        try:
            ip_interface(self.cidr)
        except ValueError:
            return
        self._run("ip", "addr", "add", self.cidr, "dev", self.name)

    def apply_routes(self):
        for route in self.routes:
            self._run("ip", "route", "add", route.dst, "via", route.gw)

    def move_to_ns(self, netns: str):
        run_command("ip", "link", "set", self.name, "netns", netns)

    def release(self):
        """Delete the interface, failures are only logged."""
        try:
            self._run("ip", "link", "delete", self.name)
        except NsnetError as e:
            logger.error("Unable to delete %s: %s", self.name, e)

    def to_dict(self) -> Dict:
        return {
            "Cidr": self.cidr,
            "HwAddr": self.hw_addr,
            "Name": self.name,
            "NodeName": self.node_name,
            "NetNs": self.netns,
            "State": self.state,
            "Routes": [r.to_dict() for r in self.routes],
            "PeerName": self.peer_name,
            "Peer": self.peer.to_dict(),
            "Patch": self.patch,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "Link":
        return cls(
            cidr=d.get("Cidr", ""),
            hw_addr=d.get("HwAddr", ""),
            name=d.get("Name", ""),
            node_name=d.get("NodeName", ""),
            netns=d.get("NetNs", ""),
            state=d.get("State") or STATE_DOWN,
            routes=[Route.from_dict(r) for r in d.get("Routes") or []],
            peer_name=d.get("PeerName", ""),
            peer=Peer.from_dict(d.get("Peer") or {}),
            patch=d.get("Patch", False),
        )


class Links(list):
    """The links of a node, in declaration order."""

    def link_by_peer(self, peer: Peer) -> Optional[Link]:
        for link in self:
            if link.node_name == peer.node_name and link.name == peer.if_name:
                return link
        return None

    def by_name(self, name: str) -> Optional[Link]:
        for link in self:
            if link.name == name:
                return link
        return None

    def put(self, link: Link) -> Link:
        """Add a link, replacing the one with the same name if any."""
        for i, current in enumerate(self):
            if current.name == link.name:
                self[i] = link
                return link
        self.append(link)
        return link


@dataclass
class Pair:
    """The two ends of one connection."""

    left: Link
    right: Link

    @property
    def is_patch(self) -> bool:
        return self.left.patch

    def by_node_name(self, node: "Node") -> Link:
        if self.left.node_name == node.node_name:
            return self.left
        return self.right

    def create(self):
        """Create the veth pair.

        The right end is created directly in its namespace, the left end is
        moved to its namespace afterwards. This always attempts the creation.
        """
        command = ["link", "add", "name", self.left.name]
        if self.left.hw_addr:
            command += ["address", self.left.hw_addr]
        command += ["type", "veth", "peer", "name", self.right.name]
        if self.right.hw_addr:
            command += ["address", self.right.hw_addr]
        if self.right.netns:
            command += ["netns", self.right.netns]
        run_command("ip", *command)

        if self.left.netns:
            self.left.move_to_ns(self.left.netns)

    def up(self) -> "Pair":
        """Address the ends, set them up and apply the routes of the right end.

        Patch pairs are up as soon as their ports are attached.
        """
        if self.is_patch:
            return self

        self.left.apply_cidr()
        self.right.apply_cidr()
        self.left.up()
        self.right.up()
        self.right.apply_routes()

        self.left.set_state(STATE_UP)
        self.right.set_state(STATE_UP)

        logger.info(
            "[Link] %s %s %s <---> %s %s %s",
            self.left.node_name,
            self.left.name,
            self.left.cidr,
            self.right.node_name,
            self.right.name,
            self.right.cidr,
        )
        return self

    def release(self):
        self.left.release()
        self.right.release()


def new_link(
    left: "Node", right: "Node", *refs: Link, pool: Optional[AddressPool] = None
) -> Pair:
    """Build the two ends of a connection between two nodes.

    Args:
        left: first node
        right: second node
        refs: up to two links whose non empty fields are kept (resp. for the
            left and the right end), anything else is generated.
        pool: where to get the addresses from (default to the process wide
            pool)

    Returns:
        The pair, nothing is created on the OS side and the ends aren't
        added to the nodes yet.
    """
    if len(refs) > 2:
        raise ValueError("At most two links can be passed to new_link")
    _refs = [copy.deepcopy(r) for r in refs] + [Link() for _ in range(2 - len(refs))]
    lhs, rhs = _refs
    if pool is None:
        pool = default_pool()

    if left.kind == SWITCH and right.kind == SWITCH:
        lhs.set_node_name(left).set_name(left, PATCH_PREFIX).set_patch()
        rhs.set_node_name(right).set_name(right, PATCH_PREFIX).set_patch()
    else:
        for link, node in ((lhs, left), (rhs, right)):
            (
                link.set_cidr(pool)
                .set_hw_addr(pool)
                .set_netns(node)
                .set_name(node, ETH_PREFIX)
                .set_node_name(node)
                .set_state(STATE_DOWN)
            )

    lhs.set_peer(rhs)
    rhs.set_peer(lhs)
    return Pair(lhs, rhs)
