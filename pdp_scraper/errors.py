class ScraperError(Exception):
    """Base class for errors raised by the scraper."""


class FatalPageError(ScraperError):
    """
    The page can no longer be used (closed, crashed, navigation aborted).

    Raised out of the extraction core unchanged so the runner can retry the
    whole page.
    """

    def __init__(self, message: str, url: str = None):
        super().__init__(message)
        self.url = url


class ConfigError(ScraperError):
    """Invalid or incomplete configuration."""
