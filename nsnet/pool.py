"""
Address allocation for the emulated links.

The :py:class:`AddressPool` hands out CIDRs and MAC addresses to the links
built by :py:func:`~nsnet.link.new_link`. A pool keeps one cursor per
network prefix: each call to :py:meth:`AddressPool.next_cidr` moves the
cursor one address forward, so an address is never handed out twice during
the pool lifetime. When the cursor reaches the end of the prefix the pool
refuses to wrap and raises :py:class:`~nsnet.errors.PoolExhausted`.

MAC addresses are built from the OUI of a real hardware address (the
locally administered bit is set) and three random octets. The pool
remembers the MACs it issued and draws again on a collision.
"""
import logging
import secrets
import threading
from collections import OrderedDict
from ipaddress import IPv4Interface, IPv6Interface, ip_interface
from typing import Optional, Set, Tuple, Union

from netaddr import EUI, AddrFormatError, mac_unix_expanded

from nsnet.config import get_config
from nsnet.constants import LOCAL_ADMIN_BIT
from nsnet.errors import InvalidAddress, PoolExhausted

logger = logging.getLogger(__name__)

InterfaceType = Union[IPv4Interface, IPv6Interface]


def _parse(cidr: str) -> Tuple[str, InterfaceType]:
    """Parse a cidr into (key, cursor).

    Cidrs may carry an address instead of the network address
    (e.g. 10.200.22.31/16): both the key and the cursor are masked, the
    first address handed out is 10.200.0.1/16.
    """
    if not isinstance(cidr, str) or "/" not in cidr:
        raise InvalidAddress(cidr)
    try:
        cursor = ip_interface(cidr)
    except ValueError as e:
        raise InvalidAddress(cidr, str(e))
    network = cursor.network
    return str(network.network_address), ip_interface(
        f"{network.network_address}/{network.prefixlen}"
    )


class AddressPool:
    """Allocator of non colliding IPs and MACs.

    Args:
        cidr: (optional) seed network. If omitted the ``default_cidr`` of the
              configuration is used the first time an address is needed.

    Raises:
        InvalidAddress: the seed isn't a valid cidr
    """

    def __init__(self, cidr: Optional[str] = None):
        self._lock = threading.Lock()
        self._cache: "OrderedDict[str, InterfaceType]" = OrderedDict()
        self._macs: Set[str] = set()
        self._preset = False
        if cidr is not None:
            key, cursor = _parse(cidr)
            self._cache[key] = cursor
            self._preset = True

    @property
    def preset(self) -> bool:
        """Whether the pool was seeded by the caller."""
        return self._preset

    def next_cidr(self, prefix: Optional[str] = None) -> str:
        """Get the next cidr of a network.

        Args:
            prefix: the network to draw from. If None the first known
                network is used.

        Returns:
            The next address of the network, in the ``ip/prefixlen`` form.

        Raises:
            InvalidAddress: ``prefix`` isn't a valid cidr
            PoolExhausted: no address is left in the network
        """
        with self._lock:
            if prefix is None:
                if not self._cache:
                    key, cursor = _parse(get_config()["default_cidr"])
                    self._cache[key] = cursor
                key = next(iter(self._cache))
            else:
                key, cursor = _parse(prefix)
                self._cache.setdefault(key, cursor)

            cursor = self._cache[key]
            network = cursor.network
            try:
                ip = cursor.ip + 1
            except ValueError:
                raise PoolExhausted(str(network))
            if ip not in network:
                raise PoolExhausted(str(network))

            self._cache[key] = ip_interface(f"{ip}/{network.prefixlen}")
            return str(self._cache[key])

    def next_addr(
        self, address: Optional[str] = None, netmask: Optional[str] = None
    ) -> str:
        """Same as :py:meth:`next_cidr` but returns the ip only.

        Args:
            address: (optional) address of the network
            netmask: (optional) netmask of the network (e.g 255.255.255.0)
                must be given along with ``address``
        """
        if (address is None) != (netmask is None):
            raise InvalidAddress(address, "address and netmask go together")
        prefix = None
        if address is not None:
            prefix = f"{address}/{netmask}"
        return str(ip_interface(self.next_cidr(prefix)).ip)

    def next_mac(self, seed: str) -> str:
        """Generate a MAC address.

        Args:
            seed: a hardware address whose first three octets (OUI) are
                kept

        Raises:
            InvalidAddress: the seed isn't a valid 48 bits MAC address
        """
        try:
            hw = EUI(seed)
        except (AddrFormatError, TypeError, ValueError) as e:
            raise InvalidAddress(seed, str(e))
        if len(hw.words) != 6:
            raise InvalidAddress(seed, "Only 48 bits MAC addresses are supported")

        oui = bytes([hw.words[0] | LOCAL_ADMIN_BIT, hw.words[1], hw.words[2]])
        with self._lock:
            while True:
                value = int.from_bytes(oui + secrets.token_bytes(3), "big")
                mac = str(EUI(value, dialect=mac_unix_expanded))
                if mac not in self._macs:
                    break
                logger.debug("MAC %s already issued, drawing again", mac)
            self._macs.add(mac)
        return mac


_instance: Optional[AddressPool] = None
_instance_lock = threading.Lock()


def default_pool(cidr: Optional[str] = None) -> AddressPool:
    """Process wide pool.

    The first caller may seed it with ``cidr``, later seeds are ignored.
    """
    global _instance
    with _instance_lock:
        if _instance is None:
            _instance = AddressPool(cidr)
        elif cidr is not None:
            logger.debug("Default pool already created, ignoring %s", cidr)
        return _instance
