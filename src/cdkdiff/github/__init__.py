"""Pull request comments, one synthesized diff comment per CDK output directory.

Renders the diff results of a directory into markdown and keeps exactly one
comment per directory on the pull request, updated in place on re-runs.
"""
