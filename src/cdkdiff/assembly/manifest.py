"""Read cloud assembly manifests into ordered stages.

A cdk.out directory carries a ``manifest.json`` listing its artifacts. Stacks
are ``aws:cloudformation:stack`` artifacts; CDK Stages appear as nested
``cdk:cloud-assembly`` artifacts whose directory holds another manifest.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import networkx as nx
from pydantic import ValidationError

from cdkdiff.assembly.models import (
    MANIFEST_FILE,
    NESTED_ASSEMBLY_ARTIFACT,
    STACK_ARTIFACT,
    CloudAssembly,
    Stage,
)
from cdkdiff.exceptions import AssemblyLoadError

logger = logging.getLogger("cdkdiff.assembly")


def load_assembly(directory: str | Path) -> CloudAssembly:
    """Load every stack of the assembly in `directory`.

    Main-assembly stacks come first, then nested assemblies in declaration
    order. Within one assembly, stacks follow their dependencies and otherwise
    keep declaration order.

    Raises:
        AssemblyLoadError: If a manifest is missing, malformed, or cyclic.
    """
    directory = Path(directory)
    manifest = _read_manifest(directory)
    stages = _collect_stages(directory, manifest, root=directory, nested=None)
    logger.debug(
        "Loaded %d stacks from %s: %s",
        len(stages), directory, [s.display_name for s in stages],
    )
    return CloudAssembly(
        directory=str(directory),
        version=str(manifest.get("version", "")),
        stages=stages,
    )


def _read_manifest(directory: Path) -> dict:
    manifest_path = directory / MANIFEST_FILE
    if not manifest_path.is_file():
        raise AssemblyLoadError(str(directory), f"{MANIFEST_FILE} not found")
    try:
        data = json.loads(manifest_path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise AssemblyLoadError(str(directory), f"unreadable {MANIFEST_FILE}: {e}") from e
    if not isinstance(data, dict):
        raise AssemblyLoadError(str(directory), f"{MANIFEST_FILE} is not an object")
    return data


def _collect_stages(
    directory: Path, manifest: dict, root: Path, nested: str | None
) -> list[Stage]:
    artifacts = manifest.get("artifacts") or {}
    if not isinstance(artifacts, dict):
        raise AssemblyLoadError(str(directory), "artifacts is not an object")
    stacks: list[Stage] = []
    nested_dirs: list[tuple[str, Path]] = []

    for artifact_id, artifact in artifacts.items():
        if not isinstance(artifact, dict):
            raise AssemblyLoadError(str(directory), f"artifact '{artifact_id}' is not an object")
        kind = artifact.get("type")
        props = artifact.get("properties") or {}
        if not isinstance(props, dict):
            raise AssemblyLoadError(
                str(directory), f"properties of artifact '{artifact_id}' is not an object"
            )
        if kind == STACK_ARTIFACT:
            try:
                stage = Stage(
                    artifact_id=artifact_id,
                    display_name=artifact.get("displayName", ""),
                    template_file=str(directory / props.get("templateFile", f"{artifact_id}.template.json")),
                    assembly_dir=str(directory),
                    root_dir=str(root),
                    dependencies=artifact.get("dependencies") or [],
                    nested_assembly=nested,
                )
            except (TypeError, ValidationError) as e:
                raise AssemblyLoadError(
                    str(directory), f"invalid stack artifact '{artifact_id}': {e}"
                ) from e
            stacks.append(stage)
        elif kind == NESTED_ASSEMBLY_ARTIFACT:
            name = props.get("displayName") or artifact_id
            dir_name = props.get("directoryName", artifact_id)
            if not isinstance(name, str) or not isinstance(dir_name, str):
                raise AssemblyLoadError(str(directory), f"invalid nested assembly '{artifact_id}'")
            nested_dirs.append((name, directory / dir_name))

    ordered = _order_by_dependencies(directory, stacks)
    for name, nested_dir in nested_dirs:
        ordered.extend(_collect_stages(
            nested_dir, _read_manifest(nested_dir), root=root, nested=name
        ))
    return ordered


def _order_by_dependencies(directory: Path, stacks: list[Stage]) -> list[Stage]:
    """Topologically sort stacks; ties keep declaration order."""
    position = {s.artifact_id: i for i, s in enumerate(stacks)}
    graph = nx.DiGraph()
    graph.add_nodes_from(position)
    for stack in stacks:
        for dep in stack.dependencies:
            # Asset manifests and other non-stack artifacts don't constrain order
            if dep in position:
                graph.add_edge(dep, stack.artifact_id)

    try:
        order = list(nx.lexicographical_topological_sort(graph, key=position.__getitem__))
    except nx.NetworkXUnfeasible as e:
        cycle = " -> ".join(edge[0] for edge in nx.find_cycle(graph))
        raise AssemblyLoadError(str(directory), f"stack dependency cycle: {cycle}") from e

    by_id = {s.artifact_id: s for s in stacks}
    return [by_id[artifact_id] for artifact_id in order]
