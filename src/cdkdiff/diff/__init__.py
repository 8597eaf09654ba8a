"""Per-stack diffing of cloud assemblies.

Loads the stacks of each changed cdk.out directory, diffs them one at a
time through a DiffEngine, and hands the ordered results to the comment
renderer.
"""
