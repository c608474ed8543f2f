"""Test helpers building layers, archives and stored images."""

import io
import json
import tarfile
from pathlib import Path
from typing import Optional

from imagediff.digest import calculate_digest
from imagediff.flags import default_flags
from imagediff.models import (
    MEDIA_TYPE_OCI_CONFIG,
    MEDIA_TYPE_OCI_INDEX,
    MEDIA_TYPE_OCI_MANIFEST,
    Descriptor,
)
from imagediff.store import ContentStore

AMD64 = {"os": "linux", "architecture": "amd64"}
ARM64 = {"os": "linux", "architecture": "arm64"}


def make_flags(**overrides):
    """Default flag values with keyword overrides (underscores become dashes)."""
    flags = default_flags()
    flags["platform"] = ("linux/amd64",)
    for name, value in overrides.items():
        flags[name.replace("_", "-")] = value
    return flags


def make_layer(entries, format=tarfile.PAX_FORMAT) -> bytes:
    """Build an uncompressed tar layer from entry dicts."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=format) as tar:
        for entry in entries:
            data = entry.get("data", b"")
            info = tarfile.TarInfo(entry["name"])
            info.size = len(data)
            info.mtime = entry.get("mtime", 1700000000)
            info.mode = entry.get("mode", 0o644)
            info.uid = entry.get("uid", 0)
            info.gid = entry.get("gid", 0)
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def make_config(platform=AMD64, created="2024-01-01T00:00:00Z", history=None, **extra):
    config = {
        **platform,
        "created": created,
        "config": {"Cmd": ["/bin/sh"]},
        "history": history if history is not None else [{"created": created, "created_by": "ADD"}],
    }
    config.update(extra)
    return config


async def put_image(
    store: ContentStore,
    layers,
    config: Optional[dict] = None,
    annotations: Optional[dict] = None,
) -> Descriptor:
    """Store an OCI image made of ``layers`` and return its manifest descriptor."""
    config_data = json.dumps(config or make_config()).encode("utf-8")
    config_digest = await store.write_blob(config_data)
    layer_descs = []
    for layer in layers:
        digest = await store.write_blob(layer)
        layer_descs.append(
            {"mediaType": "application/vnd.oci.image.layer.v1.tar", "digest": digest, "size": len(layer)}
        )
    manifest = {
        "schemaVersion": 2,
        "mediaType": MEDIA_TYPE_OCI_MANIFEST,
        "config": {"mediaType": MEDIA_TYPE_OCI_CONFIG, "digest": config_digest, "size": len(config_data)},
        "layers": layer_descs,
    }
    if annotations:
        manifest["annotations"] = annotations
    data = json.dumps(manifest).encode("utf-8")
    digest = await store.write_blob(data)
    return Descriptor(media_type=MEDIA_TYPE_OCI_MANIFEST, digest=digest, size=len(data))


async def put_index(store: ContentStore, manifests) -> Descriptor:
    """Store an OCI index over ``(descriptor, platform)`` pairs."""
    index = {
        "schemaVersion": 2,
        "mediaType": MEDIA_TYPE_OCI_INDEX,
        "manifests": [{**desc.to_dict(), "platform": platform} for desc, platform in manifests],
    }
    data = json.dumps(index).encode("utf-8")
    digest = await store.write_blob(data)
    return Descriptor(media_type=MEDIA_TYPE_OCI_INDEX, digest=digest, size=len(data))


def make_docker_archive(
    path: Path, layers, config: Optional[dict] = None, repo_tags=None
) -> Path:
    """Write a ``docker save`` style tar archive."""
    config_data = json.dumps(config or make_config()).encode("utf-8")
    config_name = f"{calculate_digest(config_data).split(':')[1]}.json"
    members = {config_name: config_data}
    layer_names = []
    for i, layer in enumerate(layers):
        name = f"layer{i}/layer.tar"
        members[name] = layer
        layer_names.append(name)
    manifest = [{"Config": config_name, "RepoTags": repo_tags or [], "Layers": layer_names}]
    members["manifest.json"] = json.dumps(manifest).encode("utf-8")

    with tarfile.open(path, "w") as tar:
        for name, content in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            tar.addfile(info, io.BytesIO(content))
    return path
