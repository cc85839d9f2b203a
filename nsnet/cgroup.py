"""Resource limitation of the hosts, driven through the libcgroup tools.

A :py:class:`Cgroup` is declared with a set of controllers (``cpu``,
``memory``...) and their parameters. Creating it runs ``cgcreate`` and
``cgset``, commands that must run inside the group are prefixed with
:py:meth:`Cgroup.exec_prefix` (``cgexec -g ...``).
"""
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from nsnet.errors import NsnetError
from nsnet.utils import full_path_for, run_command

logger = logging.getLogger(__name__)


@dataclass
class Param:
    key: str
    value: Any

    def to_dict(self) -> Dict:
        return {"Key": self.key, "Value": self.value}

    @classmethod
    def from_dict(cls, d: Dict) -> "Param":
        return cls(key=d["Key"], value=d["Value"])


def _format_value(value: Any) -> str:
    # bool is a subclass of int, test it first
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float):
        return str(int(value))
    return str(value)


@dataclass
class Controller:
    name: str
    params: List[Param] = field(default_factory=list)

    def set_value(self, key: str, value: Any) -> "Controller":
        """Set (or replace) a parameter of the controller.

        Only strings, numbers and booleans are supported.
        """
        if not isinstance(value, (str, int, float, bool)):
            logger.error("Unexpected type %s for %s", type(value), key)
            return self
        for param in self.params:
            if param.key == key:
                param.value = value
                return self
        self.params.append(Param(key, value))
        return self

    def to_dict(self) -> Dict:
        return {"Name": self.name, "Params": [p.to_dict() for p in self.params]}

    @classmethod
    def from_dict(cls, d: Dict) -> "Controller":
        controller = cls(d["Name"])
        for p in d.get("Params") or []:
            param = Param.from_dict(p)
            controller.set_value(param.key, param.value)
        return controller


class Cgroup:
    """A control group.

    Args:
        name: name (path) of the group
        controllers: controllers attached to the group
    """

    def __init__(self, name: str, controllers: Optional[List[Controller]] = None):
        self.name = name
        self.controllers: List[Controller] = []
        for controller in controllers or []:
            self.controllers.append(copy.deepcopy(controller))

    def __repr__(self):
        return f"Cgroup({self.groups})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Cgroup):
            return NotImplemented
        return self.name == other.name and self.controllers == other.controllers

    @property
    def groups(self) -> str:
        """The ``<controllers>:<path>`` form of libcgroup."""
        names = ",".join(c.name for c in self.controllers) or "*"
        return f"{names}:{self.name}"

    def get_controller(self, name: str) -> Optional[Controller]:
        for controller in self.controllers:
            if controller.name == name:
                return controller
        return None

    def add_controller(self, name: str) -> Controller:
        controller = self.get_controller(name)
        if controller is None:
            controller = Controller(name)
            self.controllers.append(controller)
        return controller

    def set_value(self, controller: Controller, key: str, value: Any) -> "Cgroup":
        if self.get_controller(controller.name) is not controller:
            controller = self.add_controller(controller.name)
        controller.set_value(key, value)
        return self

    def create(self):
        """Physically create the group and apply the parameters."""
        run_command(full_path_for("cgcreate"), "-g", self.groups)
        for controller in self.controllers:
            for param in controller.params:
                run_command(
                    full_path_for("cgset"),
                    "-r",
                    f"{param.key}={_format_value(param.value)}",
                    self.name,
                )

    def release(self):
        """Recursively delete the group, failures are only logged."""
        try:
            run_command(full_path_for("cgdelete"), "-r", "-g", self.groups)
        except NsnetError as e:
            logger.error("Unable to delete cgroup %s: %s", self.name, e)

    def exec_prefix(self) -> List[str]:
        """Command prefix to run something inside the group."""
        return [full_path_for("cgexec"), "-g", self.groups]

    def to_dict(self) -> Dict:
        return {
            "Name": self.name,
            "Controllers": [c.to_dict() for c in self.controllers],
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "Cgroup":
        return cls(
            d["Name"],
            controllers=[Controller.from_dict(c) for c in d.get("Controllers") or []],
        )
