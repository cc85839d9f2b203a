import subprocess
from unittest import mock

import psutil

from nsnet.constants import EMPTY_HWADDR
from nsnet.errors import CommandFailed, PreconditionMissing
from nsnet.utils import first_real_hwaddr, full_path_for, hostname, require, run_command, switchname

from nsnet.tests.unit import NsnetTest


class TestRunCommand(NsnetTest):
    @mock.patch("nsnet.utils.subprocess.run")
    def test_output(self, run):
        run.return_value = subprocess.CompletedProcess(["ip"], 0, stdout="h1 (id: 0)\n")
        self.assertEqual("h1 (id: 0)\n", run_command("ip", "netns", "list"))
        self.assertEqual(["ip", "netns", "list"], run.call_args[0][0])
        self.assertEqual(subprocess.STDOUT, run.call_args[1]["stderr"])

    @mock.patch("nsnet.utils.subprocess.run")
    def test_failure(self, run):
        run.return_value = subprocess.CompletedProcess(
            ["ip"], 2, stdout="RTNETLINK answers: File exists\n"
        )
        with self.assertRaises(CommandFailed) as ctx:
            run_command("ip", "link", "add", "name", "veth0", "type", "veth")
        self.assertEqual(2, ctx.exception.returncode)
        self.assertIn("File exists", ctx.exception.output)
        self.assertIn("File exists", str(ctx.exception))
        self.assertEqual("ip", ctx.exception.command[0])

    @mock.patch("nsnet.utils.subprocess.run", side_effect=FileNotFoundError())
    def test_missing_binary(self, _):
        with self.assertRaises(PreconditionMissing) as ctx:
            run_command("ovs-vsctl", "show")
        self.assertEqual("ovs-vsctl", ctx.exception.binary)


class TestFullPath(NsnetTest):
    @mock.patch("nsnet.utils.shutil.which", side_effect=lambda c: f"/sbin/{c}")
    def test_found(self, _):
        self.assertEqual("/sbin/ip", full_path_for("ip"))
        self.assertEqual(["/sbin/ip", "/sbin/ovs-vsctl"], require("ip", "ovs-vsctl"))

    @mock.patch("nsnet.utils.shutil.which", return_value=None)
    def test_missing(self, _):
        with self.assertRaises(PreconditionMissing):
            require("ip")


class TestHwAddr(NsnetTest):
    @mock.patch("nsnet.utils.psutil.net_if_addrs")
    def test_skip_empty(self, net_if_addrs):
        net_if_addrs.return_value = {
            "lo": [mock.Mock(family=psutil.AF_LINK, address=EMPTY_HWADDR)],
            "eth1": [mock.Mock(family=psutil.AF_LINK, address="52:54:00:00:00:02")],
            "eth0": [
                mock.Mock(family=2, address="192.168.0.2"),
                mock.Mock(family=psutil.AF_LINK, address="52:54:00:00:00:01"),
            ],
        }
        self.assertEqual("52:54:00:00:00:01", first_real_hwaddr())

    @mock.patch("nsnet.utils.psutil.net_if_addrs")
    def test_nothing(self, net_if_addrs):
        net_if_addrs.return_value = {
            "lo": [mock.Mock(family=psutil.AF_LINK, address=EMPTY_HWADDR)]
        }
        self.assertEqual(EMPTY_HWADDR, first_real_hwaddr())


class TestNames(NsnetTest):
    def test_names(self):
        self.assertRegex(hostname(), r"^host-\d+$")
        self.assertRegex(switchname(), r"^switch-\d+$")
        self.assertEqual("host-0", hostname(1))
