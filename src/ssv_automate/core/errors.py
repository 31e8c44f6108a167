"""Custom exceptions for SSV automation."""


class SSVAutomateError(Exception):
    """Base exception for all errors raised by this tool."""

    pass


class ConfigurationError(SSVAutomateError):
    """
    Raised when the tool is not configured to perform an operation.

    This can happen when:
    - A required environment variable (RPC endpoint, private key, ...) is unset
    - A default operator has no DKG endpoint registered
    """

    pass


class RemoteDataError(SSVAutomateError):
    """Base exception for failures talking to a remote data source."""

    pass


class SSVAPIError(RemoteDataError):
    """Raised when the SSV REST API cannot be reached or answers with an error."""

    pass


class SubgraphError(RemoteDataError):
    """Raised when a subgraph query fails or returns GraphQL errors."""

    pass


class DKGCeremonyError(SSVAutomateError):
    """Raised when the ssv-dkg container fails or leaves no usable output."""

    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output


class DKGTimeoutError(DKGCeremonyError):
    """Raised when the ssv-dkg container does not finish in time."""

    pass


class DepositFileError(SSVAutomateError):
    """Raised when a deposit or keyshares file is missing or malformed."""

    pass


class DepositMergeError(DepositFileError):
    """
    Raised when deposit files cannot be merged.

    Deposit files and keyshares files must pair up one to one; a partial
    merge is never written.
    """

    pass


class TransactionError(SSVAutomateError):
    """Raised when a transaction is rejected or reverts on-chain."""

    pass
