from __future__ import annotations


class GitDetectiveError(Exception):
    pass


class VcsError(GitDetectiveError):
    """Repository not found, clone failure, bad reference, or a git command that exited non-zero."""


class UrlError(GitDetectiveError):
    pass


class EncodingError(GitDetectiveError):
    """An author name or path that is not valid UTF-8."""


class IoError(GitDetectiveError):
    def __init__(self, path: str, reason: str = "") -> None:
        self.path = path
        self.reason = reason
        msg = f"failed to read {path}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)
