from abc import ABC, abstractmethod
from typing import Dict, Optional

from nsnet.link import Link, Links, Peer
from nsnet.netns import NetNs


class Node(ABC):
    """Capabilities shared by the hosts and the switches.

    ``kind`` is the variant discriminant, it tells in which list of the
    persisted scheme the node lives.
    """

    kind: str = ""

    @property
    @abstractmethod
    def node_name(self) -> str:
        ...

    @abstractmethod
    def netns(self) -> Optional[NetNs]:
        ...

    @abstractmethod
    def get_links(self) -> Links:
        ...

    @abstractmethod
    def add_link(self, link: Link):
        ...

    @abstractmethod
    def ensure(self):
        """Make sure the node exists on the OS side."""
        ...

    @abstractmethod
    def release(self):
        ...

    @abstractmethod
    def to_dict(self) -> Dict:
        ...

    def links_count(self) -> int:
        return len(self.get_links())

    def link_by_peer(self, peer: Peer) -> Optional[Link]:
        return self.get_links().link_by_peer(peer)

    def get_cidr(self, peer: Peer) -> str:
        link = self.link_by_peer(peer)
        return link.cidr if link is not None else ""

    def get_hw_addr(self, peer: Peer) -> str:
        link = self.link_by_peer(peer)
        return link.hw_addr if link is not None else ""

    def get_state(self, peer: Peer) -> str:
        link = self.link_by_peer(peer)
        return link.state if link is not None else ""
