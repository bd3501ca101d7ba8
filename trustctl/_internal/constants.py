"""trustctl constants."""
import logging
import os
from typing import Any
from typing import Dict

DNS_PROVIDERS_ENTRY_POINT = "trustctl.dns_providers"
"""Entry point group name for registered DNS providers."""

CLI_DEFAULTS: Dict[str, Any] = dict(  # noqa
    config_files=[
        "/opt/trustctl/cli.ini",
        # https://freedesktop.org/wiki/Software/xdg-user-dirs/
        os.path.join(os.environ.get("XDG_CONFIG_HOME", "~/.config"),
                     "trustctl", "cli.ini"),
    ],

    # Main parser
    verbose_count=0,
    quiet=False,
    debug=False,
    max_log_backups=1000,

    # Paths
    config_dir="/opt/trustctl",
    plugins_dir=None,
    credentials_dir=None,
    certs_dir=None,
    logs_dir=None,

    # request
    domains=None,
    validation="http",
    dns_provider=None,
    server_url="",
    hmac_id="",
    hmac_key="",
    webroot="/var/www/html",
    email=None,
    installer="auto",

    # Validation timing
    dns_propagation_seconds=5,
    propagation_timeout=120,
    propagation_interval=5,
    http_wait_seconds=2,
    enterprise_latency=1,
)
"""Defaults for CLI flags and `.NamespaceConfig` attributes."""

QUIET_LOGGING_LEVEL = logging.ERROR
"""Logging level to use in quiet mode."""

DEFAULT_LOGGING_LEVEL = logging.WARNING
"""Default logging level to use when not in quiet mode."""

PLUGINS_DIR = "plugins"
"""Directory (relative to `.NamespaceConfig.config_dir`) holding DNS
provider plugins."""

CREDENTIALS_DIR = "credentials"
"""Directory (relative to `.NamespaceConfig.config_dir`) holding account
records and provider credentials."""

CERTS_DIR = "certs"
"""Directory (relative to `.NamespaceConfig.config_dir`) holding issued
certificates and their metadata."""

LOGS_DIR = "logs"
"""Directory (relative to `.NamespaceConfig.config_dir`) holding log files."""

LOG_FILE = "trustctl.log"
"""Basename of the rotating debug log."""

CONFIG_DIRS_MODE = 0o700
"""Mode of directories that hold secrets."""

PRIVATE_FILE_MODE = 0o600
"""Mode of private keys and credential files."""

PUBLIC_FILE_MODE = 0o644
"""Mode of certificates and CSRs."""

CHALLENGE_DIR_MODE = 0o755
"""Mode of the HTTP challenge directory under the webroot."""

KEY_SIZE = 2048
"""RSA key size for certificate and account keys."""

LETSENCRYPT_CA = "letsencrypt"
"""Account name of the default public CA."""

ENTERPRISE_CA = "enterprise-ca"
"""Account name of an HMAC authenticated enterprise CA."""

CHALLENGE_PATH = os.path.join(".well-known", "acme-challenge")
"""HTTP challenge directory, relative to the webroot."""

VALIDATION_METHODS = ("http", "dns", "email")
"""Known domain validation methods."""

INSTALLER_CHOICES = ("auto", "nginx", "apache", "none")
"""Values accepted by ``--installer``."""

NGINX_DIRS = (
    "/etc/nginx/sites-enabled",
    "/etc/nginx/sites-available",
    "/etc/nginx/conf.d",
)
"""nginx configuration directories searched for virtual hosts."""

APACHE_DIRS = (
    "/etc/apache2/sites-enabled",
    "/etc/apache2/sites-available",
    "/etc/httpd/conf.d",
)
"""Apache configuration directories searched for virtual hosts."""
