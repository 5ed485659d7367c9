from .mocks import MockTransport, READ_TIME, COMMIT_TIME

__all__ = [
    "MockTransport",
    "READ_TIME",
    "COMMIT_TIME",
]
