"""
nginx reverse proxy: site descriptor, renderer and configurator.
"""

from .configurator import ProxyConfigurator
from .render import render_site
from .site import ProxySiteDescriptor, StaticAssetRule, build_site

__all__ = [
    "ProxyConfigurator",
    "render_site",
    "ProxySiteDescriptor",
    "StaticAssetRule",
    "build_site",
]
