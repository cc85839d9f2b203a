"""In memory stand-ins for the tools driven by nsnet.

:py:class:`FakeKernel` replaces ``subprocess.run`` (and ``shutil.which``) in
:py:mod:`nsnet.utils` and emulates the subset of ``ip``, ``ovs-vsctl``,
``sysctl`` and the libcgroup tools nsnet relies on. The state it keeps
(namespaces, interfaces, bridges...) can be inspected by the tests.
"""
import os
import subprocess
import threading
from typing import Dict, List, Optional, Set, Tuple
from unittest import mock

import psutil

SEED_HWADDR = "52:54:00:12:34:56"

IfKey = Tuple[str, str]


class FakeKernel:
    def __init__(self):
        self.calls: List[List[str]] = []
        self.namespaces: Set[str] = set()
        # (netns, name) -> interface, "" is the root namespace
        self.ifaces: Dict[IfKey, Dict] = {}
        self.routes: List[Tuple[str, str, str]] = []
        self.bridges: Dict[str, List[str]] = {}
        self.ovs_ifaces: Dict[str, Dict[str, str]] = {}
        self.controllers: Dict[str, str] = {}
        self.cgroups: Set[str] = set()
        self.sysctls: List[Tuple[str, str]] = []
        self.pid_netns: Dict[int, str] = {}
        # commands starting with one of those fail
        self.failing: List[str] = []
        self._patches = []

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *args):
        self.stop()

    def start(self):
        interface = mock.Mock(family=psutil.AF_LINK, address=SEED_HWADDR)
        self._patches = [
            mock.patch("nsnet.utils.subprocess.run", side_effect=self.run),
            mock.patch("nsnet.utils.shutil.which", side_effect=lambda c: f"/usr/bin/{c}"),
            mock.patch(
                "nsnet.utils.psutil.net_if_addrs", return_value={"eth0": [interface]}
            ),
        ]
        for p in self._patches:
            p.start()

    def stop(self):
        for p in self._patches:
            p.stop()
        self._patches = []

    # inspection helpers

    def iface(self, name: str, netns: str = "") -> Optional[Dict]:
        return self.ifaces.get((netns, name))

    def commands(self, *prefix: str) -> List[List[str]]:
        """Recorded commands starting with prefix."""
        return [c for c in self.calls if c[: len(prefix)] == list(prefix)]

    # emulation

    def run(self, command, **kwargs):
        argv = [os.path.basename(command[0])] + list(command[1:])
        self.calls.append(argv)
        returncode, out = self.execute(argv, "")
        return subprocess.CompletedProcess(command, returncode, stdout=out)

    def execute(self, argv: List[str], netns: str) -> Tuple[int, str]:
        line = " ".join(argv)
        for failing in self.failing:
            if line.startswith(failing):
                return 1, f"{line}: failure"

        cmd, args = argv[0], argv[1:]
        if cmd == "ip":
            return self._ip(args, netns)
        if cmd == "ovs-vsctl":
            return self._ovs(args)
        if cmd == "sysctl":
            self.sysctls.append((netns, args[0]))
            return 0, f"{args[0].replace('=', ' = ')}\n"
        if cmd == "cgexec":
            return self.execute([os.path.basename(argv[3])] + argv[4:], netns)
        if cmd == "cgcreate":
            self.cgroups.add(args[1].split(":", 1)[1])
            return 0, ""
        if cmd == "cgdelete":
            self.cgroups.discard(args[2].split(":", 1)[1])
            return 0, ""
        return 0, ""

    def _ip(self, args: List[str], netns: str) -> Tuple[int, str]:
        obj, rest = args[0], args[1:]
        if obj == "netns":
            return self._netns(rest)
        if obj == "link":
            return self._link(rest, netns)
        if obj == "addr":
            # addr add CIDR dev NAME
            iface = self.ifaces.get((netns, rest[3]))
            if iface is None:
                return 1, f'Cannot find device "{rest[3]}"'
            if rest[1] in iface["addrs"]:
                return 2, "RTNETLINK answers: File exists"
            iface["addrs"].append(rest[1])
            return 0, ""
        if obj == "route":
            # route add DST via GW
            self.routes.append((netns, rest[1], rest[3]))
            return 0, ""
        return 1, f'Object "{obj}" is unknown'

    def _netns(self, rest: List[str]) -> Tuple[int, str]:
        sub = rest[0]
        if sub == "list":
            return 0, "".join(
                f"{name} (id: {i})\n" for i, name in enumerate(sorted(self.namespaces))
            )
        if sub == "add":
            if rest[1] in self.namespaces:
                return 1, f'Cannot create namespace file "/var/run/netns/{rest[1]}"'
            self.namespaces.add(rest[1])
            return 0, ""
        if sub == "delete":
            if rest[1] not in self.namespaces:
                return 1, f'Cannot remove namespace file "/var/run/netns/{rest[1]}"'
            self.namespaces.remove(rest[1])
            for key in [k for k in self.ifaces if k[0] == rest[1]]:
                self._delete(key)
            return 0, ""
        if sub == "identify":
            return 0, self.pid_netns.get(int(rest[1]), "") + "\n"
        if sub == "exec":
            if rest[1] not in self.namespaces:
                return 1, f'Cannot open network namespace "{rest[1]}"'
            return self.execute([os.path.basename(rest[2])] + rest[3:], rest[1])
        return 1, f'Command "{sub}" is unknown'

    def _link(self, rest: List[str], netns: str) -> Tuple[int, str]:
        sub = rest[0]
        if sub == "add":
            return self._link_add(rest[1:], netns)
        if sub == "show":
            if (netns, rest[1]) not in self.ifaces:
                return 1, f'Device "{rest[1]}" does not exist.'
            return 0, f"1: {rest[1]}: <BROADCAST,MULTICAST>\n"
        if sub == "delete":
            if (netns, rest[1]) not in self.ifaces:
                return 1, f'Cannot find device "{rest[1]}"'
            self._delete((netns, rest[1]))
            return 0, ""
        if sub == "set":
            if rest[1] == "dev":
                name, attrs = rest[2], rest[3:]
            else:
                name, attrs = rest[1], rest[2:]
            iface = self.ifaces.get((netns, name))
            if iface is None:
                return 1, f'Cannot find device "{name}"'
            if attrs[0] == "up":
                iface["up"] = True
            elif attrs[0] == "address":
                iface["mac"] = attrs[1]
            elif attrs[0] == "netns":
                if attrs[1] not in self.namespaces:
                    return 1, f'Invalid "netns" value "{attrs[1]}"'
                self._move((netns, name), (attrs[1], name))
            return 0, ""
        return 1, f'Command "{sub}" is unknown'

    def _link_add(self, it: List[str], netns: str) -> Tuple[int, str]:
        # name L [address M] type veth peer name R [address M] [netns NS]
        left, i = it[1], 2
        left_mac = ""
        if it[i] == "address":
            left_mac = it[i + 1]
            i += 2
        i += 4
        right, i = it[i], i + 1
        right_mac, right_netns = "", netns
        while i < len(it):
            if it[i] == "address":
                right_mac = it[i + 1]
            elif it[i] == "netns":
                right_netns = it[i + 1]
            i += 2
        if right_netns and right_netns not in self.namespaces:
            return 1, f'Invalid "netns" value "{right_netns}"'
        lkey, rkey = (netns, left), (right_netns, right)
        if lkey in self.ifaces or rkey in self.ifaces:
            return 2, "RTNETLINK answers: File exists"
        self.ifaces[lkey] = dict(up=False, addrs=[], mac=left_mac, peer=rkey)
        self.ifaces[rkey] = dict(up=False, addrs=[], mac=right_mac, peer=lkey)
        return 0, ""

    def _move(self, old: IfKey, new: IfKey):
        iface = self.ifaces.pop(old)
        self.ifaces[new] = iface
        peer = iface.get("peer")
        if peer in self.ifaces:
            self.ifaces[peer]["peer"] = new

    def _delete(self, key: IfKey):
        iface = self.ifaces.pop(key, None)
        if iface is not None and iface.get("peer"):
            self.ifaces.pop(iface["peer"], None)

    def _ovs(self, args: List[str]) -> Tuple[int, str]:
        may_exist = False
        if args[0] == "--may-exist":
            may_exist, args = True, args[1:]
        sub = args[0]
        if sub == "add-br":
            if args[1] in self.bridges:
                return 1, f"ovs-vsctl: a bridge named {args[1]} already exists"
            self.bridges[args[1]] = []
            return 0, ""
        if sub == "br-exists":
            return (0, "") if args[1] in self.bridges else (2, "")
        if sub == "del-br":
            if args[1] not in self.bridges:
                return 1, f"ovs-vsctl: no bridge named {args[1]}"
            for port in self.bridges.pop(args[1]):
                self.ovs_ifaces.pop(port, None)
            return 0, ""
        if sub == "add-port":
            bridge, port = args[1], args[2]
            if bridge not in self.bridges:
                return 1, f"ovs-vsctl: no bridge named {bridge}"
            if any(port in ports for ports in self.bridges.values()):
                if may_exist:
                    return 0, ""
                return 1, f"ovs-vsctl: cannot create a port named {port}"
            self.bridges[bridge].append(port)
            self.ovs_ifaces.setdefault(port, {})
            return 0, ""
        if sub == "port-to-br":
            for bridge, ports in self.bridges.items():
                if args[1] in ports:
                    return 0, f"{bridge}\n"
            return 1, f"ovs-vsctl: no port named {args[1]}"
        if sub == "set":
            # set interface NAME key=value
            key, value = args[3].split("=", 1)
            self.ovs_ifaces.setdefault(args[2], {})[key] = value
            return 0, ""
        if sub == "set-controller":
            self.controllers[args[1]] = args[2]
            return 0, ""
        return 1, f"ovs-vsctl: unknown command '{sub}'"


class FakeProcess:
    """Quacks like a psutil.Process: runs until a signal is received."""

    _next_pid = 4000

    def __init__(self, cmdline: Optional[List[str]] = None, pid: Optional[int] = None):
        if pid is None:
            FakeProcess._next_pid += 1
            pid = FakeProcess._next_pid
        self.pid = pid
        self.info = dict(pid=pid, cmdline=cmdline or [])
        self.signals: List[int] = []
        self._done = threading.Event()

    def wait(self, timeout=None):
        self._done.wait(timeout)
        return 0 if self._done.is_set() else None

    def is_running(self) -> bool:
        return not self._done.is_set()

    def send_signal(self, sig: int):
        if self._done.is_set():
            raise psutil.NoSuchProcess(self.pid)
        self.signals.append(sig)
        self._done.set()

    def exit(self):
        self._done.set()
