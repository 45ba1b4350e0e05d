"""Proxy liveness supervisor.

Makes sure a local Tor proxy is listening on its SOCKS and control ports
before dependent processes (such as a merge-mining proxy) are launched.
"""

from .__version__ import __version__

__all__ = ["__version__"]
