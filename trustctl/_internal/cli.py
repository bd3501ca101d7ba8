"""trustctl command line argument parsing."""
import argparse
from typing import Any
from typing import List
from typing import Optional

import configargparse

from trustctl import configuration
from trustctl._internal import constants


SHORT_USAGE = """
  trustctl request --domains DOMAINS [options]
  trustctl renew [options]

trustctl obtains certificates for a set of domains, installs them into the
local webserver and keeps enough state to renew them unattended.
"""

VERBS = ("request", "renew")


def flag_default(name: str) -> Any:
    """Default value of the flag stored as ``name``."""
    return constants.CLI_DEFAULTS[name]


def config_help(name: str) -> str:
    """Help text for a path whose default lives under ``--config-dir``."""
    return "{0} directory (default: <config-dir>/{1})".format(
        name.replace("_", " ").capitalize(), getattr(constants, name.upper()))


class _ChoiceLowerAction(argparse.Action):
    """Stores the lower-cased value of a case-insensitive choice."""

    def __call__(self, parser: argparse.ArgumentParser, namespace: argparse.Namespace,
                 values: Any, option_string: Optional[str] = None) -> None:
        value = values.lower()
        if self.metavar and value not in self.metavar.split("|"):
            parser.error("argument {0}: invalid choice: {1!r} (choose from {2})".format(
                option_string, values, ", ".join(self.metavar.split("|"))))
        setattr(namespace, self.dest, value)


def _build_parser() -> configargparse.ArgParser:
    parser = configargparse.ArgParser(
        prog="trustctl",
        usage=SHORT_USAGE,
        args_for_setting_config_path=["-c", "--config"],
        default_config_files=flag_default("config_files"),
        config_arg_help_message="path to config file (default: {0})".format(
            " and ".join(flag_default("config_files"))))

    parser.add_argument("verb", choices=VERBS, help="operation to run")

    request = parser.add_argument_group(
        "request", "Options for obtaining a certificate; ignored by renew")
    request.add_argument(
        "-d", "--domains", dest="domains", default=flag_default("domains"),
        metavar="DOMAINS",
        help="Comma-separated list of domains. The first one is the primary "
             "domain naming the certificate.")
    request.add_argument(
        "--validation", action=_ChoiceLowerAction, default=flag_default("validation"),
        metavar="|".join(constants.VALIDATION_METHODS),
        help="Domain validation method (default: %(default)s)")
    request.add_argument(
        "--dns-provider", dest="dns_provider", default=flag_default("dns_provider"),
        help="DNS provider used with --validation dns")
    request.add_argument(
        "--serverurl", dest="server_url", default=flag_default("server_url"),
        help="Enterprise CA URL. The default public CA is used when empty.")
    request.add_argument(
        "--hmac-id", dest="hmac_id", default=flag_default("hmac_id"),
        help="HMAC key identifier for the enterprise CA")
    request.add_argument(
        "--hmac-key", dest="hmac_key", default=flag_default("hmac_key"),
        help="HMAC secret for the enterprise CA")
    request.add_argument(
        "--webroot", default=flag_default("webroot"),
        help="Document root served over HTTP, used with --validation http "
             "(default: %(default)s)")
    request.add_argument(
        "-m", "--email", default=flag_default("email"),
        help="Account contact email (default: admin@<primary domain>)")
    request.add_argument(
        "--installer", action=_ChoiceLowerAction, default=flag_default("installer"),
        metavar="|".join(constants.INSTALLER_CHOICES),
        help="Webserver to install the certificate into. 'auto' detects the "
             "running webserver, 'none' skips installation (default: %(default)s)")

    paths = parser.add_argument_group("paths", "Arguments changing file locations")
    paths.add_argument(
        "--config-dir", default=flag_default("config_dir"),
        help="Configuration directory (default: %(default)s)")
    for name in ("plugins_dir", "credentials_dir", "certs_dir", "logs_dir"):
        paths.add_argument(
            "--" + name.replace("_", "-"), dest=name, default=flag_default(name),
            help=config_help(name))

    timing = parser.add_argument_group("timing", "Validation waits, in seconds")
    timing.add_argument(
        "--dns-propagation-seconds", type=float,
        default=flag_default("dns_propagation_seconds"),
        help="Time to wait for DNS changes when the provider cannot report "
             "propagation (default: %(default)s)")
    timing.add_argument(
        "--propagation-timeout", type=float, default=flag_default("propagation_timeout"),
        help="Maximum time to poll a provider for DNS propagation (default: %(default)s)")
    timing.add_argument(
        "--propagation-interval", type=float, default=flag_default("propagation_interval"),
        help="Time between DNS propagation checks (default: %(default)s)")
    timing.add_argument(
        "--http-wait-seconds", type=float, default=flag_default("http_wait_seconds"),
        help="Time to wait after writing HTTP challenges (default: %(default)s)")
    timing.add_argument(
        "--enterprise-latency", type=float, default=flag_default("enterprise_latency"),
        help=argparse.SUPPRESS)

    output = parser.add_argument_group("output", "Verbosity")
    output.add_argument(
        "-v", "--verbose", dest="verbose_count", action="count",
        default=flag_default("verbose_count"),
        help="This flag can be used multiple times to incrementally increase "
             "the verbosity of output, e.g. -vvv.")
    output.add_argument(
        "-q", "--quiet", dest="quiet", action="store_true", default=flag_default("quiet"),
        help="Silence all output except errors.")
    output.add_argument(
        "--debug", action="store_true", default=flag_default("debug"),
        help="Show tracebacks in case of errors")
    output.add_argument(
        "--max-log-backups", type=nonnegative_int, default=flag_default("max_log_backups"),
        help="Specifies the maximum number of backup logs that should be kept. "
             "Setting this to 0 disables log rotation (default: %(default)s)")
    return parser


def nonnegative_int(value: str) -> int:
    """Converts value to an int and checks that it is not negative.

    :param str value: value to convert

    :returns: integer representation of value
    :rtype: int

    :raises argparse.ArgumentTypeError: if value isn't a non-negative integer

    """
    try:
        int_value = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError("value must be an integer")

    if int_value < 0:
        raise argparse.ArgumentTypeError("value must be non-negative")
    return int_value


def prepare_and_parse_args(args: List[str]) -> configuration.NamespaceConfig:
    """Parse the command line and configuration files.

    Domains are kept as given; they are checked when the request flow
    reads them so that bad names are reported like any other
    configuration error.

    :param list args: command line arguments without the program name

    :returns: parsed configuration
    :rtype: trustctl.configuration.NamespaceConfig

    """
    return configuration.NamespaceConfig(_build_parser().parse_args(args))
