"""Exceptions raised while talking to upstream services or building payloads."""


class ConsolidatorError(Exception):
    pass


class UnsupportedNetworkError(ConsolidatorError, ValueError):
    pass


class RateLimitedError(ConsolidatorError):
    """The validator data API answered with HTTP 429."""

    def __init__(self, url: str) -> None:
        super().__init__(f'Rate limited by {url}')
        self.url = url


class UpstreamError(ConsolidatorError):
    """Any other HTTP or transport failure of the validator data API."""


class MalformedResponseError(ConsolidatorError):
    """The upstream body is not JSON or does not match the expected model."""


class ExecutionError(ConsolidatorError):
    """JSON-RPC error or transport failure on the execution node."""


class PayloadBuildError(ConsolidatorError):
    pass
