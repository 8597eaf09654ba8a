"""Custom exceptions for cdkdiff."""


class CdkDiffError(Exception):
    """Base exception for all cdkdiff errors."""


class ConfigurationError(CdkDiffError):
    """Invalid inputs, or no CDK output directories matched the pattern."""


class ChangeDetectionError(CdkDiffError):
    """The git comparison against the base ref could not be executed."""


class SelectionError(CdkDiffError):
    """A stack selection strategy required a match that did not occur."""


class EngineError(CdkDiffError):
    """The diff engine failed."""


class AssemblyLoadError(EngineError):
    """A cloud assembly could not be loaded for diffing."""

    def __init__(self, directory: str, reason: str):
        self.directory = directory
        super().__init__(f"Cannot load cloud assembly '{directory}': {reason}")


class CommentWriteError(CdkDiffError):
    """Creating or updating the pull request comment failed."""
