class InvoiceRelayError(Exception):
    """Base class for errors raised while relaying invoices."""


class ConfigurationError(InvoiceRelayError):
    """A required setting is absent or invalid. Fatal at startup."""


class StorageError(InvoiceRelayError):
    """A remote object store operation failed."""


class ProcessingError(InvoiceRelayError):
    """The remote document job could not be submitted or finished with an error."""


class ProcessingTimeoutError(ProcessingError):
    """The remote document job did not finish within the configured bound."""


class FilesystemError(InvoiceRelayError):
    """A local staging read, write or delete failed."""
