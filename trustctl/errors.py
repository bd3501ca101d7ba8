"""trustctl client errors."""
from typing import Mapping


class Error(Exception):
    """Generic trustctl error."""


class SubprocessError(Error):
    """Subprocess handling error."""


class ConfigurationError(Error):
    """Configuration sanity error."""


class MissingEnterpriseCredentials(ConfigurationError):
    """An enterprise CA URL was given without both HMAC id and key."""


# Account Errors
class AccountStorageError(Error):
    """Generic `.AccountFileStorage` error."""


class AccountNotFound(AccountStorageError):
    """Account not found error."""


# Credential Guard Errors
class CredentialsError(Error):
    """The credentials directory cannot be trusted."""


class CredentialsNotFound(CredentialsError):
    """The credentials directory does not exist."""


class CredentialsNotADirectory(CredentialsError):
    """The credentials path exists but is not a directory."""


class InsecurePermissions(CredentialsError):
    """A credential file is readable or writable by group or others.

    :ivar str path: offending file
    :ivar int mode: permission bits of the offending file

    """
    def __init__(self, path: str, mode: int) -> None:
        self.path = path
        self.mode = mode
        super().__init__(
            "Credential file {0} has insecure permissions {1:04o}; it must "
            "not be accessible by group or others".format(path, mode))


# Plugin Errors
class PluginError(Error):
    """trustctl DNS provider plugin error."""


class PluginUnsupportedPlatform(PluginError):
    """Loading plugins from a directory is not supported on this platform."""


class PluginOpenFailed(PluginError):
    """The plugin could not be found or imported."""


class PluginSymbolNotFound(PluginError):
    """The plugin module does not export a provider."""


class PluginTypeMismatch(PluginError):
    """The exported provider does not satisfy the DNS provider contract."""


# Validation Errors
class ValidationError(Error):
    """Domain validation error."""


class UnknownValidationMethod(ValidationError):
    """The requested validation method is not known."""


class ProviderNotConfigured(ValidationError):
    """DNS validation was requested without a DNS provider."""


class ValidationNotImplemented(ValidationError):
    """The requested validation method exists but is not implemented."""


class FailedChallenges(ValidationError):
    """Failed challenges error.

    :ivar dict failures: mapping of domain to the exception raised while
        presenting its challenge

    """
    def __init__(self, failures: Mapping[str, BaseException]) -> None:
        assert failures
        self.failures = dict(sorted(failures.items()))
        super().__init__()

    def __str__(self) -> str:
        return "Failed to present challenges for {0} domain(s): {1}".format(
            len(self.failures),
            ", ".join(f"{domain} ({error})" for domain, error in self.failures.items()))


# Issuance Errors
class IssuanceError(Error):
    """The certificate authority did not issue a certificate."""


class MissingServerURL(IssuanceError):
    """The enterprise CA client has no server URL."""


# Installer Errors
class InstallationError(Error):
    """Certificate installation error."""


class NoSupportedServer(InstallationError):
    """No supported webserver could be detected."""


class NilCertificate(InstallationError):
    """No certificate material was given to install."""


class ConfigParseError(InstallationError):
    """A webserver configuration file could not be parsed."""


# Persistence Errors
class PersistenceError(Error):
    """Certificate metadata persistence error."""


class EmptyDomainSet(PersistenceError):
    """A metadata record without domains cannot be stored."""


class MetadataNotFound(PersistenceError):
    """No metadata record exists for the domain."""
