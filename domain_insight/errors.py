class ProviderError(Exception):
    """A data provider answered, but not with usable data (non-2xx, bad credentials, malformed body)"""

    def __init__(self, provider: str, message: str):
        super().__init__(message)
        self.provider = provider


class BranchTimeout(Exception):
    def __init__(self, seconds: float):
        super().__init__(f"timed out after {seconds:g}s")
        self.seconds = seconds


class ResearchError(Exception):
    """Internal failure while assembling a research result"""
