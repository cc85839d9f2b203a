"""
Hosts are the end nodes of the emulated network.

A :py:class:`Host` owns a network namespace (named after the host), the
links that live in it, an optional :py:class:`~nsnet.cgroup.Cgroup` limiting
its resources and the processes started in it. Commands and processes run
on a host go through the cgroup (if any) and ``ip netns exec``.

A lock protects the links and the processes of a host: processes exits are
observed from background threads that update the process list.
"""
import logging
import os
import subprocess
import threading
import time
from typing import Dict, List, Optional

import psutil

from nsnet.cgroup import Cgroup
from nsnet.config import get_config
from nsnet.constants import HOST
from nsnet.errors import NsnetError, ProcessNotRunning
from nsnet.link import Link, Links
from nsnet.log import getLogger
from nsnet.netns import NetNs
from nsnet.node import Node
from nsnet.process import Process, Procs
from nsnet.utils import full_path_for, hostname, run_command

logger = logging.getLogger(__name__)


class Host(Node):
    """A host.

    Args:
        name: name of the host, also the name of its namespace
        links: links of the host
        procs: processes supervised by the host
        cgroup: (optional) resource limitation of the host

    Nothing is created on the OS side, see :py:meth:`ensure` or
    :py:func:`new_host`.
    """

    kind = HOST

    def __init__(
        self,
        name: str,
        links: Optional[List[Link]] = None,
        procs: Optional[List[Process]] = None,
        cgroup: Optional[Cgroup] = None,
    ):
        self.name = name
        self.links = Links(links or [])
        self.procs = Procs(procs or [])
        self.cgroup = cgroup
        self._netns: Optional[NetNs] = NetNs(name)
        self._lock = threading.RLock()
        self.logger = getLogger(__name__, tags=[name])

    def __repr__(self):
        return f"Host({self.name}, links={len(self.links)}, procs={len(self.procs)})"

    @property
    def node_name(self) -> str:
        return self.name

    def netns(self) -> Optional[NetNs]:
        return self._netns

    def get_links(self) -> Links:
        return self.links

    def add_link(self, link: Link):
        with self._lock:
            self.links.put(link)

    def ensure(self):
        """Create what's missing: namespace, cgroup, forwarding."""
        if self._netns is not None:
            self._netns.ensure()
        if self.cgroup is not None:
            self.cgroup.create()
        if len(self.links) > 1 and get_config()["enable_forwarding"]:
            self.enable_forwarding()

    def _prefix(self) -> List[str]:
        command: List[str] = []
        if self.cgroup is not None:
            command = self.cgroup.exec_prefix()
        if self._netns is not None:
            command += [full_path_for("ip"), "netns", "exec", self._netns.name]
        return command

    def run_command(self, *args: str) -> str:
        """Run a command on the host and wait for it."""
        command = self._prefix() + list(args)
        return run_command(command[0], *command[1:])

    def enable_forwarding(self):
        self.run_command("sysctl", "net.ipv4.ip_forward=1")

    def _launch(self, *args: str) -> Process:
        command = self._prefix() + list(args)
        proc = Process(command=args[0], args=list(args[1:]))

        output = os.path.join(get_config()["output_dir"], f"output.{time.time_ns()}")
        out = None
        try:
            out = open(output, "w")
        except OSError as e:
            self.logger.error(f"Unable to create {output} for the process output: {e}")
            output = ""

        try:
            proc.handle = psutil.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=out,
                stderr=subprocess.STDOUT if out is not None else None,
            )
        finally:
            if out is not None:
                out.close()
        proc.output = output

        self.logger.info(f"Started {command}, all output goes to {output or 'stdout'}")
        return proc

    def _watch(self, proc: Process):
        handle = proc.handle

        def wait():
            pid = handle.pid
            try:
                status = handle.wait()
            except psutil.NoSuchProcess:
                status = None
            with self._lock:
                for p in self.procs:
                    if p.handle is handle:
                        p.handle = None
            self.logger.info(f"Process [{pid}] {proc.cmdline} finished with {status}")

        threading.Thread(target=wait, daemon=True).start()

    def run_process(self, *args: str) -> Process:
        """Start a process on the host and supervise it.

        The process is stopped when the host is released.
        """
        with self._lock:
            proc = self._launch(*args)
            self.procs.append(proc)
            self._watch(proc)
        return proc

    def recover_procs(self):
        """Attach again to the declared processes, start the missing ones."""
        netns = self._netns.name if self._netns is not None else ""
        with self._lock:
            for proc in self.procs:
                self.logger.info(f"Recovering {proc.cmdline}")
                found = proc.find_running(netns)
                if found is not None:
                    proc.handle = found
                else:
                    self.logger.warning(f"{ProcessNotRunning(proc.cmdline)}, starting it")
                    launched = self._launch(*proc.cmdline)
                    proc.handle = launched.handle
                    proc.output = launched.output
                self._watch(proc)

    def release(self):
        """Clean up everything, each step is best effort."""
        deleted = ""
        if self._netns is not None:
            try:
                self._netns.release()
                deleted = self._netns.name
            except NsnetError as e:
                self.logger.error(e)

        with self._lock:
            for link in self.links:
                if deleted and link.netns == deleted:
                    # gone with the namespace
                    self.logger.debug(f"{link.name} deleted with the namespace")
                    continue
                link.release()

            for proc in self.procs:
                try:
                    proc.stop()
                except NsnetError as e:
                    self.logger.warning(e)

        if self.cgroup is not None:
            try:
                self.cgroup.release()
            except NsnetError as e:
                self.logger.error(e)

    def to_dict(self) -> Dict:
        with self._lock:
            return {
                "Name": self.name,
                "Links": [link.to_dict() for link in self.links],
                "Procs": [proc.to_dict() for proc in self.procs],
                "Cgroup": self.cgroup.to_dict() if self.cgroup is not None else None,
            }

    @classmethod
    def from_dict(cls, d: Dict) -> "Host":
        cgroup = None
        if d.get("Cgroup"):
            cgroup = Cgroup.from_dict(d["Cgroup"])
        return cls(
            d["Name"],
            links=[Link.from_dict(link) for link in d.get("Links") or []],
            procs=[Process.from_dict(proc) for proc in d.get("Procs") or []],
            cgroup=cgroup,
        )


def new_host(name: Optional[str] = None, cgroup: Optional[Cgroup] = None) -> Host:
    """Create a host (and its namespace).

    Args:
        name: name of the host, a random ``host-<n>`` if omitted
        cgroup: resource limitation to apply on the host
    """
    host = Host(name or hostname(), cgroup=cgroup)
    host.ensure()
    return host


def new_router(name: Optional[str] = None, cgroup: Optional[Cgroup] = None) -> Host:
    """Create a host with ip forwarding enabled."""
    host = new_host(name, cgroup=cgroup)
    host.enable_forwarding()
    return host
