"""
Switches are Open vSwitch bridges living in the root namespace.

Host facing ports are the root ends of veth pairs added to the bridge.
Two switches are connected by a pair of OVS patch ports, no veth pair is
involved.
"""
import logging
from typing import Dict, List, Optional

from nsnet.constants import STATE_UP, SWITCH
from nsnet.errors import CommandFailed, NsnetError
from nsnet.link import Link, Links
from nsnet.log import getLogger
from nsnet.netns import NetNs
from nsnet.node import Node
from nsnet.utils import run_command, switchname

logger = logging.getLogger(__name__)

OVS_VSCTL = "ovs-vsctl"


class Switch(Node):
    """An OVS bridge.

    Args:
        name: name of the bridge
        ports: ports of the switch
        controller: (optional) address of the OpenFlow controller
            (e.g. ``tcp:127.0.0.1:6633``)
    """

    kind = SWITCH

    def __init__(
        self, name: str, ports: Optional[List[Link]] = None, controller: str = ""
    ):
        self.name = name
        self.ports = Links(ports or [])
        self.controller = controller
        self.logger = getLogger(__name__, tags=[name])

    def __repr__(self):
        return f"Switch({self.name}, ports={len(self.ports)})"

    @property
    def node_name(self) -> str:
        return self.name

    def netns(self) -> Optional[NetNs]:
        return None

    def get_links(self) -> Links:
        return self.ports

    def create(self):
        run_command(OVS_VSCTL, "add-br", self.name)

    def exists(self) -> bool:
        try:
            run_command(OVS_VSCTL, "br-exists", self.name)
        except CommandFailed:
            return False
        return True

    def ensure(self):
        if not self.exists():
            self.create()
        if self.controller:
            self.set_controller(self.controller)

    def has_port(self, name: str) -> bool:
        try:
            out = run_command(OVS_VSCTL, "port-to-br", name)
        except CommandFailed:
            return False
        return out.strip() == self.name

    def port_exists(self, port: Link) -> bool:
        """Whether a port is already realized.

        Patch ports have no kernel interface, ask OVS.
        """
        if port.patch:
            return self.has_port(port.name)
        return port.exists()

    def add_link(self, link: Link):
        if link.patch:
            self.add_patch_port(link)
        else:
            self.add_port(link)

    def add_port(self, link: Link):
        run_command(OVS_VSCTL, "--may-exist", "add-port", self.name, link.name)
        self.ports.put(link)

    def add_patch_port(self, link: Link):
        run_command(OVS_VSCTL, "--may-exist", "add-port", self.name, link.name)
        run_command(OVS_VSCTL, "set", "interface", link.name, "type=patch")
        run_command(
            OVS_VSCTL, "set", "interface", link.name, f"options:peer={link.peer.name}"
        )
        link.set_state(STATE_UP)
        self.ports.put(link)

    def set_controller(self, addr: str):
        run_command(OVS_VSCTL, "set-controller", self.name, addr)
        self.controller = addr

    def release(self):
        """Delete the bridge, failures are only logged."""
        try:
            run_command(OVS_VSCTL, "del-br", self.name)
        except NsnetError as e:
            self.logger.error(f"Unable to delete bridge: {e}")

    def to_dict(self) -> Dict:
        return {
            "Name": self.name,
            "Ports": [port.to_dict() for port in self.ports],
            "Controller": self.controller,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "Switch":
        return cls(
            d["Name"],
            ports=[Link.from_dict(p) for p in d.get("Ports") or []],
            controller=d.get("Controller") or "",
        )


def new_switch(name: Optional[str] = None, controller: str = "") -> Switch:
    """Create a switch, unless a bridge with this name already exists."""
    switch = Switch(name or switchname(), controller=controller)
    switch.ensure()
    return switch
