from typing import List, Optional


class NsnetError(Exception):
    pass


class InvalidAddress(NsnetError):
    def __init__(self, value, msg: str = ""):
        super().__init__(msg or f"Invalid address {value!r}")
        self.value = value


class PoolExhausted(InvalidAddress):
    def __init__(self, network):
        super().__init__(network, f"No address left in {network}")
        self.network = network


class PeerNotFound(NsnetError):
    def __init__(self, node_name: str, if_name: Optional[str] = None):
        if if_name:
            msg = f"Can't find interface {if_name} on node {node_name}"
        else:
            msg = f"Can't find node {node_name}"
        super().__init__(msg)
        self.node_name = node_name
        self.if_name = if_name


class DuplicatePair(NsnetError):
    def __init__(self, key: str):
        super().__init__(f"Wrong scheme. Two identical pairs found: {key}")
        self.key = key


class CommandFailed(NsnetError):
    def __init__(self, command: List[str], output: str, returncode: int):
        super().__init__(
            f"Command {' '.join(command)} failed ({returncode}), output: {output}"
        )
        self.command = command
        self.output = output
        self.returncode = returncode


class ProcessNotRunning(NsnetError):
    def __init__(self, command: List[str]):
        super().__init__(f"No such process: {' '.join(command)}")
        self.command = command


class PreconditionMissing(NsnetError):
    def __init__(self, binary: str):
        super().__init__(f"{binary} command not found in the PATH")
        self.binary = binary
