"""cdkdiff - CDK diff comments for pull requests on infrastructure monorepos."""

__version__ = "0.1.0"
