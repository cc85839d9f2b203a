import logging
import random
import shutil
import subprocess
from typing import List

import psutil

from nsnet.constants import EMPTY_HWADDR, HOSTNAME_RANGE, SWITCHNAME_RANGE
from nsnet.errors import CommandFailed, PreconditionMissing

logger = logging.getLogger(__name__)


def run_command(cmd: str, *args: str) -> str:
    """Run an external command synchronously.

    All the OS mutations (links, addresses, routes, bridges...) go through
    this single call.

    Args:
        cmd: the command to run
        args: its arguments

    Returns:
        The combined stdout and stderr of the command.

    Raises:
        CommandFailed: the command exited with a non-zero status
        PreconditionMissing: the command can't be found
    """
    command = [cmd] + list(args)
    logger.debug("Running %s", " ".join(command))
    try:
        result = subprocess.run(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            universal_newlines=True,
        )
    except FileNotFoundError:
        raise PreconditionMissing(cmd)
    if result.returncode != 0:
        raise CommandFailed(command, result.stdout, result.returncode)
    return result.stdout


def full_path_for(cmd: str) -> str:
    """Full path of a command, based on the PATH environment variable."""
    path = shutil.which(cmd)
    if path is None:
        raise PreconditionMissing(cmd)
    return path


def require(*cmds: str) -> List[str]:
    """Check that all the commands are available, return their full paths."""
    return [full_path_for(cmd) for cmd in cmds]


def first_real_hwaddr() -> str:
    """MAC address of the first local interface that has a real one.

    Used as the OUI seed of the generated MAC addresses.
    """
    interfaces = psutil.net_if_addrs()
    for name in sorted(interfaces):
        for addr in interfaces[name]:
            if addr.family != psutil.AF_LINK:
                continue
            if addr.address and addr.address != EMPTY_HWADDR:
                return addr.address
    return EMPTY_HWADDR


def hostname(n: int = HOSTNAME_RANGE) -> str:
    return f"host-{random.randrange(n)}"


def switchname(n: int = SWITCHNAME_RANGE) -> str:
    return f"switch-{random.randrange(n)}"
