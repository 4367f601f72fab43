"""A small TCP/IP network simulator with routers, L2 switches, ARP, routing and ping."""

__version__ = "0.1.0"