[build-system]
requires = ["setuptools>=64"]
build-backend = "setuptools.build_meta"

[project]
name = "tcpipsim"
version = "0.1.0"
description = "A small TCP/IP network simulator: routers, L2 switches, ARP, routing and ping over loopback UDP."
requires-python = ">=3.10"
dependencies = []
keywords = ["networking", "simulator", "tcp/ip", "arp", "vlan", "routing", "education"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
tcpipsim = "tcpipsim.topologies:main"
tcpipsim-pktgen = "tcpipsim.pktgen:main"

[tool.setuptools.packages.find]
include = ["tcpipsim*"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
