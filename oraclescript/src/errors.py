"""Exception hierarchy for oracle script computations.

Every fatal condition raised by the aggregation and selection engine derives
from OracleScriptError, so callers can abort a request with a single except
clause while still inspecting the structured attributes of each subclass.

.. code-block:: python

    >>> try:
    ...     router.route(["NOPE"])
    ... except UnknownSymbolError as e:
    ...     e.symbol
    'NOPE'
"""


class OracleScriptError(Exception):
    """Base exception for oracle script errors."""

    pass


class InvalidRequestError(OracleScriptError):
    """Raised when the inbound request has an invalid shape."""

    pass


class DeploymentConfigError(OracleScriptError):
    """Raised when a deployment table is missing or inconsistent."""

    pass


class UnknownSymbolError(OracleScriptError):
    """Raised when a requested symbol is not part of the deployment.

    :ivar symbol: The rejected symbol.
    """

    def __init__(self, symbol: str):
        """Initialize the error.

        :param symbol: The rejected symbol.
        """
        self.symbol = symbol
        super().__init__(f"Symbol {symbol!r} is not supported by this deployment")


class UnsupportedProviderError(OracleScriptError):
    """Raised when a provider ordinal does not exist in the deployment.

    :ivar provider_id: The unknown provider ordinal.
    """

    def __init__(self, provider_id: int):
        """Initialize the error.

        :param provider_id: The unknown provider ordinal.
        """
        self.provider_id = provider_id
        super().__init__(f"Unsupported provider id {provider_id}")


class NoDataForSymbolError(OracleScriptError):
    """Raised when no provider produced a value for a requested symbol.

    :ivar symbol: Symbol left without data.
    """

    def __init__(self, symbol: str):
        """Initialize the error.

        :param symbol: Symbol left without data.
        """
        self.symbol = symbol
        super().__init__(f"No provider returned data for {symbol}")


class NonComparableValueError(OracleScriptError):
    """Raised when a median input contains a value that cannot be ordered (NaN).

    :ivar value: The offending value.
    """

    def __init__(self, value: float):
        """Initialize the error.

        :param value: The offending value.
        """
        self.value = value
        super().__init__(f"Cannot order value {value!r}")


class MalformedResponseError(OracleScriptError):
    """Raised when a provider response does not have the agreed shape.

    :ivar expected_length: Expected response length in characters.
    :ivar actual_length: Actual response length in characters.
    """

    def __init__(self, message: str, expected_length: int | None = None, actual_length: int | None = None):
        """Initialize the error.

        :param message: Human readable description.
        :param expected_length: Expected response length, if relevant.
        :param actual_length: Actual response length, if relevant.
        """
        self.expected_length = expected_length
        self.actual_length = actual_length
        super().__init__(message)


class NoMajorityError(OracleScriptError):
    """Raised when validator reports do not agree by strict majority.

    :ivar external_id: Request channel whose reports were inspected.
    :ivar report_count: Number of reports received.
    """

    def __init__(self, external_id: int, report_count: int):
        """Initialize the error.

        :param external_id: Request channel whose reports were inspected.
        :param report_count: Number of reports received.
        """
        self.external_id = external_id
        self.report_count = report_count
        super().__init__(
            f"No majority among {report_count} reports for external id {external_id}"
        )


class ProofRejectedError(OracleScriptError):
    """Raised when a VRF proof does not verify against the provider key."""

    pass


class VRFVerificationError(OracleScriptError):
    """Raised when the VRF verifier itself fails on its inputs.

    :ivar code: Verifier error code.
    """

    INVALID_PUBLIC_KEY = 1
    INVALID_PROOF_LENGTH = 2
    INVALID_GAMMA = 3
    INVALID_SCALAR = 4
    INVALID_KEY_LENGTH = 5

    def __init__(self, code: int, message: str = ""):
        """Initialize the error.

        :param code: Verifier error code.
        :param message: Optional detail.
        """
        self.code = code
        detail = f": {message}" if message else ""
        super().__init__(f"VRF verification error with code {code}{detail}")
