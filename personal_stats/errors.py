class PersonalStatsError(Exception):
    """Base class for errors raised by the stats functions."""


class MissingCredential(PersonalStatsError, ValueError):
    """A required API key, token or setting is not configured."""


class InvalidUpstreamResponse(PersonalStatsError):
    """A provider answered, but not in the shape we expect."""


class TransportFailure(PersonalStatsError):
    """A request to a provider failed or returned an error status."""


class DownloadFailed(TransportFailure):
    pass


class UploadFailed(TransportFailure):
    pass


class MissingMedia(PersonalStatsError):
    pass


class WriteFailure(PersonalStatsError):
    """Writing a document to the document store failed."""
