# -*- coding: utf-8 -
import os
from setuptools import setup, find_packages


def read(fname):
    return open(os.path.join(os.path.dirname(__file__), fname)).read()


setup(
    name="nsnet",
    version=read("nsnet/version.txt").strip(),
    description="Emulate network topologies with network namespaces, veth pairs and Open vSwitch",
    url="https://github.com/nsnet/nsnet",
    author="nsnet developers",
    license="GPL-3.0",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: GNU General Public License v3 (GPLv3)",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        ],
    keywords="Network emulation, Network namespaces, Open vSwitch, Testbed",
    long_description=read("README.rst"),
    packages=find_packages(),
    python_requires=">=3.7",
    install_requires=[
        "jsonschema>=3.0",
        "netaddr>=0.7",
        "psutil>=5.6",
        "pyyaml>=5.1",
        "rich>=10.0",
    ],
    extras_require={
        "test": [
            "pytest",
            "ddt",
        ],
    },
    package_data={"nsnet": ["version.txt"]},
    include_package_data=True
)
