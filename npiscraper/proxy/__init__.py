"""Proxy module - Pool management and rotation."""

from .manager import Proxy, ProxyManager, ProxyPool
from .rotator import ProxyRotator, RotationStrategy

__all__ = ["Proxy", "ProxyManager", "ProxyPool", "ProxyRotator", "RotationStrategy"]
