import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import psutil

from nsnet.config import get_config
from nsnet.errors import ProcessNotRunning
from nsnet.log import DisableLogging
from nsnet.netns import identify

logger = logging.getLogger(__name__)


@dataclass
class Process:
    """A child process supervised by a host.

    ``handle`` is None until the process is started (or found again after a
    restart) and goes back to None when the process exits.
    """

    command: str
    args: List[str] = field(default_factory=list)
    output: str = ""
    handle: Optional[psutil.Process] = field(default=None, compare=False, repr=False)

    @property
    def cmdline(self) -> List[str]:
        return [self.command] + list(self.args)

    @property
    def pid(self) -> int:
        if self.handle is not None:
            return self.handle.pid
        return 0

    def is_alive(self) -> bool:
        return self.handle is not None and self.handle.is_running()

    def stop(self):
        """Send the stop signal (SIGINT by default) to the process."""
        if self.handle is None:
            raise ProcessNotRunning(self.cmdline)
        try:
            self.handle.send_signal(get_config()["stop_signal"])
        except psutil.NoSuchProcess:
            raise ProcessNotRunning(self.cmdline)

    def find_running(self, netns: str) -> Optional[psutil.Process]:
        """Look for this process in the process table.

        The process table is shared by all the namespaces, the same command
        may run on several hosts: a candidate must also belong to ``netns``.
        """
        name = " ".join(self.cmdline)
        for candidate in psutil.process_iter(["pid", "cmdline"]):
            cmdline = candidate.info.get("cmdline") or []
            if " ".join(cmdline) != name:
                continue
            # the candidate may be gone already
            with DisableLogging(level=logging.ERROR):
                candidate_netns = identify(candidate.pid)
            if candidate_netns == netns:
                return candidate
        return None

    def to_dict(self) -> Dict:
        return {
            "Command": self.command,
            "Args": list(self.args),
            "Output": self.output,
            "Pid": self.pid,
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "Process":
        return cls(
            command=d["Command"],
            args=list(d.get("Args") or []),
            output=d.get("Output", ""),
        )


class Procs(list):
    def get_by_pid(self, pid: int) -> Optional[Process]:
        for proc in self:
            if proc.handle is not None and proc.pid == pid:
                return proc
        return None
