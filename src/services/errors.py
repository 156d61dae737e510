class ServiceError(Exception):
    pass


class GenerationConfigurationError(ServiceError):
    pass


class GenerationFailedError(ServiceError):
    pass


class RateLimitedError(ServiceError):
    pass


class NetworkTimeoutError(ServiceError):
    def __init__(self, url: str, timeout_seconds: float):
        super().__init__(f"Network timeout after {timeout_seconds}s: {url}")
        self.url = url
        self.timeout_seconds = timeout_seconds
