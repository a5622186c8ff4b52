"""
Writes, enables and reloads the nginx site for the application.
"""

import logging
import re
from pathlib import Path
from typing import Optional

from shipyard.errors import CommandFailed, CommandTimeout, ConfigValidationFailed, ProxyError
from shipyard.settings import Settings
from .render import render_site
from .site import ProxySiteDescriptor

logger = logging.getLogger(__name__)

HTTP_BLOCK = re.compile(r"^([ \t]*http\s*\{[^\n]*)$", re.M)


class ProxyConfigurator:
    def __init__(self, runner, settings: Settings):
        self.runner = runner
        self.settings = settings

    def site_path(self, site: ProxySiteDescriptor) -> Path:
        return Path(self.settings.proxy.sites_available) / site.file_name

    def enabled_path(self, site: ProxySiteDescriptor) -> Path:
        return Path(self.settings.proxy.sites_enabled) / site.file_name

    def _sudo(self, command, input=None):
        try:
            return self.runner.run(["sudo"] + list(command), input=input)
        except (CommandFailed, CommandTimeout) as e:
            raise ProxyError(str(e)) from e

    def ensure_directories(self) -> None:
        logger.info("Setting up nginx directories...")
        proxy = self.settings.proxy
        self._sudo(["mkdir", "-p", proxy.sites_available, proxy.sites_enabled])

    def ensure_include(self) -> bool:
        """Make nginx.conf include sites-enabled. Returns True when it was added."""
        conf = Path(self.settings.proxy.nginx_conf)
        include = f"include {self.settings.proxy.sites_enabled}/*;"
        try:
            text = conf.read_text(encoding="utf-8")
        except OSError as e:
            raise ProxyError(f"Cannot read {conf}: {e}") from e

        if f"include {self.settings.proxy.sites_enabled}" in text:
            return False
        if not HTTP_BLOCK.search(text):
            raise ProxyError(f"No http block found in {conf}")

        logger.info("Adding sites-enabled include to %s...", conf.name)
        updated = HTTP_BLOCK.sub(lambda m: f"{m.group(1)}\n    {include}", text, count=1)
        self._sudo(["tee", str(conf)], input=updated)
        return True

    def write_site(self, site: ProxySiteDescriptor) -> Path:
        path = self.site_path(site)
        logger.info("Creating nginx configuration...")
        self._sudo(["tee", str(path)], input=render_site(site))
        return path

    def enable(self, site: ProxySiteDescriptor) -> bool:
        """Link the site into sites-enabled unless the link already exists."""
        link = self.enabled_path(site)
        if link.is_symlink():
            return False
        logger.info("Enabling nginx site...")
        self._sudo(["ln", "-s", str(self.site_path(site)), str(link)])
        return True

    def validate(self) -> None:
        logger.info("Testing nginx configuration...")
        result = self.runner.run(["sudo", "nginx", "-t"], check=False)
        if not result.ok:
            raise ConfigValidationFailed(result.output)

    def reload(self) -> None:
        logger.info("Reloading nginx...")
        self._sudo(["systemctl", "reload", "nginx"])

    def restore(self, site: ProxySiteDescriptor, previous: Optional[str], linked: bool) -> None:
        """Put the site back the way it was before a rejected configure."""
        logger.warning("Restoring previous nginx site configuration...")
        if linked:
            self._sudo(["rm", "-f", str(self.enabled_path(site))])
        if previous is None:
            self._sudo(["rm", "-f", str(self.site_path(site))])
        else:
            self._sudo(["tee", str(self.site_path(site))], input=previous)

    def configure(self, site: ProxySiteDescriptor) -> Path:
        """
        Write and enable the site, validate the whole configuration and reload.

        Reload only happens after `nginx -t` passes. A rejected configuration
        is rolled back so the next nginx start still sees a valid tree.

        Raises:
            ConfigValidationFailed: If nginx rejects the configuration
            ProxyError: If writing, linking or reloading fails
        """
        self.ensure_directories()
        self.ensure_include()
        previous = self._read_site(site)
        path = self.write_site(site)
        linked = self.enable(site)
        try:
            self.validate()
        except ConfigValidationFailed:
            self.restore(site, previous, linked)
            raise
        self._sudo(["systemctl", "enable", "nginx"])
        # start is a no-op when nginx already runs; reload then picks up the site
        self._sudo(["systemctl", "start", "nginx"])
        self.reload()
        return path

    def _read_site(self, site: ProxySiteDescriptor) -> Optional[str]:
        path = self.site_path(site)
        if not path.is_file():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise ProxyError(f"Cannot read {path}: {e}") from e
