"""
The scheme is the declared topology: switches, hosts and their links.

A scheme is usually loaded from a previously exported document and
reconciled with the OS state using :py:meth:`Scheme.recover`. The
reconciliation tolerates a partially existing topology (e.g. after a
restart of the program): every logical connection is created at most once,
whatever the number of times it is declared (once per end) and the number
of times the reconciliation runs.

.. code-block:: python

    from nsnet import Scheme

    scheme = Scheme.from_file("topology.json")
    scheme.recover()
    ...
    scheme.release()
"""
import json
import logging
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Union

import yaml

from nsnet.constants import SWITCH
from nsnet.errors import DuplicatePair, PeerNotFound
from nsnet.host import Host
from nsnet.link import Link, Pair, new_link
from nsnet.node import Node
from nsnet.pool import AddressPool
from nsnet.schema import SchemeValidator
from nsnet.switch import Switch
from nsnet.utils import require

logger = logging.getLogger(__name__)


def _pair_key(left_node: Node, left: Link, right_node: Node, right: Link) -> str:
    """Dedup key of a connection.

    Switch ends come first, ``<port>-<link>``. Host to host connections use
    the concatenation of both node and link names.
    """
    if left_node.kind != SWITCH and right_node.kind == SWITCH:
        left, right = right, left
        left_node, right_node = right_node, left_node
    if left_node.kind == SWITCH:
        return f"{left.name}-{right.name}"
    return left.node_name + left.name + right.node_name + right.name


class Scheme:
    """The declared topology.

    Args:
        switches: the switches, reconciled first
        hosts: the hosts
        pool: the address pool used to build new links. A fresh pool
              (drawing from the configured ``default_cidr``) is created if
              omitted.
    """

    def __init__(
        self,
        switches: Optional[List[Switch]] = None,
        hosts: Optional[List[Host]] = None,
        pool: Optional[AddressPool] = None,
    ):
        self.switches: List[Switch] = list(switches or [])
        self.hosts: List[Host] = list(hosts or [])
        self.pool = pool if pool is not None else AddressPool()
        # keys of the connections already materialized
        self.pairs: Set[str] = set()

    def __str__(self):
        return self.export()

    def add_node(self, node: Node) -> "Scheme":
        if isinstance(node, Switch):
            self.switches.append(node)
        elif isinstance(node, Host):
            self.hosts.append(node)
        else:
            raise TypeError(f"Unknown node type {type(node)} for {node}")
        return self

    def get_host(self, name: str) -> Optional[Host]:
        for host in self.hosts:
            if host.node_name == name:
                return host
        return None

    def get_switch(self, name: str) -> Optional[Switch]:
        for switch in self.switches:
            if switch.node_name == name:
                return switch
        return None

    def get_node(self, name: str) -> Optional[Node]:
        host = self.get_host(name)
        if host is not None:
            return host
        return self.get_switch(name)

    def nodes(self) -> Iterator[Node]:
        """Iterate over the nodes, switches first."""
        yield from self.switches
        yield from self.hosts

    def _seen(self, seen: Set[str], key: str, reverse_key: str) -> bool:
        if key in seen:
            logger.warning(DuplicatePair(key))
            return True
        # same connection, reached from its other end
        return reverse_key in seen

    def connect(self, left: Node, right: Node, *refs: Link) -> Pair:
        """Build, create and bring up a new connection between two nodes.

        Args:
            left: first node
            right: second node
            refs: (optional) partial declaration of the ends, see
                :py:func:`~nsnet.link.new_link`

        Returns:
            The pair, its ends are registered on both nodes.
        """
        for node in (left, right):
            if self.get_node(node.node_name) is None:
                self.add_node(node)

        pair = new_link(left, right, *refs, pool=self.pool)
        if pair.is_patch:
            left.add_link(pair.left)
            right.add_link(pair.right)
        else:
            pair.create()
            left.add_link(pair.left)
            pair.up()
            right.add_link(pair.right)
        self.pairs.add(_pair_key(left, pair.left, right, pair.right))
        return pair

    def recover(self):
        """Bring the OS state in line with the declared topology.

        1. the nodes are created if missing (bridges, namespaces, cgroups)
        2. switch ports are connected to their peers (patch ports between
           switches, veth pairs otherwise)
        3. host to host links are created
        4. the processes of the hosts are found again or restarted

        Raises:
            PeerNotFound: a port refers to an unknown node or interface
            CommandFailed: something couldn't be created. The topology is
                left half built.
        """
        required = ["ip"]
        if self.switches:
            required.append("ovs-vsctl")
        require(*required)

        for node in self.nodes():
            node.ensure()

        # keys met during this pass
        seen: Set[str] = set()
        for switch in self.switches:
            self._recover_switch_ports(switch, seen)

        for host in self.hosts:
            self._recover_host_links(host, seen)

        for host in self.hosts:
            host.recover_procs()

    def _recover_switch_ports(self, switch: Switch, seen: Set[str]):
        for port in list(switch.ports):
            peer = self.get_node(port.peer.node_name)
            if isinstance(peer, Switch):
                # documents without the Patch flag
                port.patch = True

            if switch.port_exists(port):
                continue

            if peer is None:
                raise PeerNotFound(port.peer.node_name)

            link = peer.link_by_peer(port.peer)
            if link is None:
                raise PeerNotFound(port.peer.node_name, port.peer.if_name)

            key = f"{port.name}-{link.name}"
            if self._seen(seen, key, f"{link.name}-{port.name}"):
                continue

            if isinstance(peer, Switch):
                link.patch = True
                switch.add_patch_port(port)
                peer.add_patch_port(link)
            else:
                pair = Pair(port, link)
                pair.create()
                switch.add_link(port)
                pair.up()
                peer.add_link(link)

            seen.add(key)
            self.pairs.add(key)

    def _recover_host_links(self, host: Host, seen: Set[str]):
        for left in list(host.links):
            peer = self.get_host(left.peer.node_name)
            if peer is None:
                # switch link (handled with the switch ports) or unknown peer
                continue

            right = peer.link_by_peer(left.peer)
            if right is None:
                continue

            key = left.node_name + left.name + right.node_name + right.name
            reverse_key = right.node_name + right.name + left.node_name + left.name
            if self._seen(seen, key, reverse_key):
                continue
            seen.add(key)

            if left.exists() and right.exists():
                logger.debug("%s already exists", key)
                self.pairs.add(key)
                continue

            pair = Pair(left, right)
            pair.create()
            pair.up()
            host.add_link(left)
            peer.add_link(right)
            self.pairs.add(key)

    def release(self):
        """Tear everything down, best effort."""
        for node in self.nodes():
            node.release()
        self.pairs.clear()

    def to_dict(self) -> Dict:
        return {
            "Switches": [s.to_dict() for s in self.switches],
            "Hosts": [h.to_dict() for h in self.hosts],
        }

    def export(self) -> str:
        return json.dumps(self.to_dict(), indent=6)

    def dump(self, path: Union[Path, str]):
        Path(path).write_text(self.export())

    @classmethod
    def from_dictionary(
        cls, dictionary: Dict, validate: bool = True, pool: Optional[AddressPool] = None
    ) -> "Scheme":
        """Build a scheme from its persisted form.

        Nothing is done on the OS side, see :py:meth:`recover`.
        """
        if validate:
            SchemeValidator.validate(dictionary)
        return cls(
            switches=[Switch.from_dict(s) for s in dictionary.get("Switches") or []],
            hosts=[Host.from_dict(h) for h in dictionary.get("Hosts") or []],
            pool=pool,
        )

    @classmethod
    def from_file(cls, path: Union[Path, str], **kwargs) -> "Scheme":
        """Load a scheme from a json (or yaml) file."""
        path = Path(path)
        content = path.read_text()
        if path.suffix in (".yml", ".yaml"):
            dictionary = yaml.safe_load(content)
        else:
            dictionary = json.loads(content)
        return cls.from_dictionary(dictionary or {}, **kwargs)
