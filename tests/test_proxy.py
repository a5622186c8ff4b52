"""
Tests for nginx site rendering and the configurator.
"""

import os

import pytest

from shipyard.errors import ConfigValidationFailed, ProxyError
from shipyard.proxy import ProxyConfigurator, build_site, render_site

NGINX_CONF = """\
user www-data;
events {
    worker_connections 768;
}

http {
    sendfile on;
    include /etc/nginx/conf.d/*.conf;
}
"""


@pytest.fixture
def site(settings):
    return build_site(settings, 3456)


@pytest.fixture
def nginx_dirs(settings, tmp_path):
    (tmp_path / "nginx" / "sites-available").mkdir(parents=True)
    (tmp_path / "nginx" / "sites-enabled").mkdir()
    conf = tmp_path / "nginx" / "nginx.conf"
    conf.write_text(NGINX_CONF)
    return conf


class TestRender:
    """Test nginx site rendering."""

    def test_server_block(self, site):
        """Test the server block essentials."""
        text = render_site(site)
        assert text.startswith("server {\n")
        assert text.rstrip().endswith("}")
        assert "    listen 80;" in text
        assert "    server_name rabbitmq.localhost;" in text
        assert "proxy_pass http://localhost:3456;" in text
        assert "proxy_set_header Upgrade $http_upgrade;" in text
        assert "proxy_read_timeout 86400;" in text
        assert "server_tokens off;" in text
        assert "access_log /var/log/nginx/rabbitmq-scout.access.log;" in text
        assert "error_log /var/log/nginx/rabbitmq-scout.error.log;" in text

    def test_security_headers_and_gzip(self, site):
        """Test security headers and gzip settings."""
        text = render_site(site)
        assert 'add_header X-Frame-Options "SAMEORIGIN" always;' in text
        assert 'add_header Referrer-Policy "strict-origin-when-cross-origin" always;' in text
        assert "gzip on;" in text
        assert "gzip_min_length 1024;" in text
        assert "image/svg+xml;" in text

    def test_static_asset_rules(self, site):
        """Test static asset caching rules."""
        text = render_site(site)
        assert "location /_next/static/ {" in text
        assert "location ~* \\.(js|css|png|jpg|jpeg|gif|ico|svg|woff|woff2|ttf|eot)$ {" in text
        assert text.count("expires 1y;") == 2
        assert text.count('add_header Cache-Control "public, immutable";') == 2

    def test_braces_balanced(self, site):
        """Test the rendered site has balanced braces."""
        text = render_site(site)
        assert text.count("{") == text.count("}")

    def test_site_uses_profile_port(self, settings):
        """Test the site follows the profile port."""
        assert build_site(settings, 4100).upstream == "http://localhost:4100"
        assert build_site(settings, 4100).file_name == "RabbitScout.rabbitmq"


class TestConfigurator:
    """Test the nginx configurator."""

    def test_configure_sequence(self, settings, runner, site, nginx_dirs):
        """Test the full configure command sequence."""
        path = ProxyConfigurator(runner, settings).configure(site)

        available = settings.proxy.sites_available
        enabled = settings.proxy.sites_enabled
        assert path == nginx_dirs.parent / "sites-available" / "RabbitScout.rabbitmq"
        assert runner.commands == [
            f"sudo mkdir -p {available} {enabled}",
            f"sudo tee {nginx_dirs}",
            f"sudo tee {path}",
            f"sudo ln -s {path} {enabled}/RabbitScout.rabbitmq",
            "sudo nginx -t",
            "sudo systemctl enable nginx",
            "sudo systemctl start nginx",
            "sudo systemctl reload nginx",
        ]
        assert runner.calls[2].input == render_site(site)

    def test_include_inserted_after_http_line(self, settings, runner, nginx_dirs):
        """Test the include goes right after the http line."""
        assert ProxyConfigurator(runner, settings).ensure_include() is True
        written = runner.calls_to("sudo", "tee")[0].input
        lines = written.splitlines()
        http = lines.index("http {")
        assert lines[http + 1] == f"    include {settings.proxy.sites_enabled}/*;"
        assert "include /etc/nginx/conf.d/*.conf;" in written

    def test_include_already_present(self, settings, runner, nginx_dirs):
        """Test an existing include is left alone."""
        nginx_dirs.write_text(NGINX_CONF.replace("sendfile on;", f"include {settings.proxy.sites_enabled}/*;"))
        assert ProxyConfigurator(runner, settings).ensure_include() is False
        assert runner.calls == []

    def test_no_http_block(self, settings, runner, nginx_dirs):
        """Test a conf without an http block raises."""
        nginx_dirs.write_text("events {}\n")
        with pytest.raises(ProxyError):
            ProxyConfigurator(runner, settings).ensure_include()

    def test_existing_symlink_not_recreated(self, settings, runner, site, nginx_dirs):
        """Test an existing symlink is not recreated."""
        configurator = ProxyConfigurator(runner, settings)
        os.symlink(configurator.site_path(site), configurator.enabled_path(site))
        assert configurator.enable(site) is False
        assert runner.calls == []

    def test_failed_validation_never_reloads(self, settings, runner, site, nginx_dirs):
        """A rejected new site is unlinked and removed, nothing is reloaded."""
        runner.on("sudo", "nginx", "-t", returncode=1,
                  stderr="nginx: [emerg] unexpected \"}\" in /etc/nginx/sites-enabled/RabbitScout.rabbitmq:12")
        configurator = ProxyConfigurator(runner, settings)
        with pytest.raises(ConfigValidationFailed) as exc:
            configurator.configure(site)
        assert "[emerg]" in exc.value.output
        assert not runner.ran("sudo", "systemctl", "reload")
        assert not runner.ran("sudo", "systemctl", "start")
        after = runner.commands[runner.commands.index("sudo nginx -t") + 1:]
        assert after == [
            f"sudo rm -f {configurator.enabled_path(site)}",
            f"sudo rm -f {configurator.site_path(site)}",
        ]

    def test_failed_validation_restores_previous_site(self, settings, runner, site, nginx_dirs):
        """An existing site file gets its old content back, its link is kept."""
        configurator = ProxyConfigurator(runner, settings)
        configurator.site_path(site).write_text("server { listen 80; }\n")
        os.symlink(configurator.site_path(site), configurator.enabled_path(site))
        runner.on("sudo", "nginx", "-t", returncode=1, stderr="nginx: [emerg] bad")

        with pytest.raises(ConfigValidationFailed):
            configurator.configure(site)

        restored = runner.calls[-1]
        assert restored.argv == ["sudo", "tee", str(configurator.site_path(site))]
        assert restored.input == "server { listen 80; }\n"
        assert not runner.ran("sudo", "rm")

    def test_stopped_nginx_started_before_reload(self, settings, runner, site, nginx_dirs):
        """Deploying while nginx is down starts it instead of failing the reload."""
        runner.on("sudo", "systemctl", "reload", "nginx", returncode=1, stderr="nginx.service is not active")
        runner.on("sudo", "systemctl", "start", "nginx",
                  effect=lambda argv: runner.on("sudo", "systemctl", "reload", "nginx"))
        ProxyConfigurator(runner, settings).configure(site)
        assert runner.commands[-2:] == ["sudo systemctl start nginx", "sudo systemctl reload nginx"]

    def test_reload_failure(self, settings, runner, site, nginx_dirs):
        """Test a failed reload raises ProxyError."""
        runner.on("sudo", "systemctl", "reload", returncode=1, stderr="Job failed")
        with pytest.raises(ProxyError):
            ProxyConfigurator(runner, settings).configure(site)
