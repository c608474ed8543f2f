"""Image comparison engine."""

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional

from ..exceptions import BlobNotFoundError, ComparisonError, UnavailableError
from ..models import MANIFEST_MEDIA_TYPES, Descriptor
from ..options import ComparisonConfig
from ..platforms import Platform, PlatformMatcher, format_platforms
from ..store import ContentStore
from .layers import compare_entries, read_entries
from .output import write_reports
from .report import ReportNode, new_report

logger = logging.getLogger(__name__)

IMAGE_NAME_ANNOTATIONS = (
    "io.containerd.image.name",
    "org.opencontainers.image.ref.name",
)
CREATED_ANNOTATION = "org.opencontainers.image.created"

_CONFIG_FIELDS = ("architecture", "os", "variant", "os.version", "author")


async def diff(
    store: ContentStore,
    descriptors: tuple[Descriptor, Descriptor],
    matcher: PlatformMatcher,
    config: ComparisonConfig,
) -> ReportNode:
    """Compare two images held in ``store``.

    Args:
        store: Content store holding both images
        descriptors: Root descriptors of input 0 and input 1
        matcher: Platforms to compare
        config: Comparison options

    Returns:
        Report whose root children are the detected conflicts

    Raises:
        UnavailableError: If no manifest matches or content is missing locally
        ComparisonError: For any other failure; ``report`` holds the partial report
    """
    report = new_report()
    differ = _Differ(store, matcher, config, report)
    try:
        await differ.compare(descriptors)
    except BlobNotFoundError as e:
        raise UnavailableError(str(e), report) from e
    except ComparisonError as e:
        if e.report is None:
            e.report = report
        raise
    except (ValueError, KeyError, TypeError) as e:
        raise ComparisonError(f"malformed image content: {e!r}", report) from e
    logger.debug(f"Comparison finished with {len(report.children)} conflict(s)")
    await write_reports(report, descriptors, config)
    return report


class _Differ:
    def __init__(
        self,
        store: ContentStore,
        matcher: PlatformMatcher,
        config: ComparisonConfig,
        report: ReportNode,
    ) -> None:
        self.store = store
        self.matcher = matcher
        self.config = config
        self.report = report
        self.handler = config.event_handler

    def conflict(self, context: str, kind: str, value0: Any, value1: Any) -> None:
        node = self.report.add(context, kind, value0, value1)
        self.handler.on_conflict(node)

    async def compare(self, descriptors: tuple[Descriptor, Descriptor]) -> None:
        self.handler.on_compare("index")
        self._compare_annotations(
            "index", descriptors[0].annotations, descriptors[1].annotations
        )
        selected = [
            await self._select_manifests(i, desc) for i, desc in enumerate(descriptors)
        ]
        if len(selected[0]) == 1 and len(selected[1]) == 1:
            (platform, desc0), (_, desc1) = selected[0][0], selected[1][0]
            await self._compare_manifest(str(platform), desc0, desc1)
            return

        remaining = {str(p): d for p, d in selected[1]}
        for platform, desc0 in selected[0]:
            desc1 = remaining.pop(str(platform), None)
            if desc1 is None:
                self.conflict(f"platform {platform}", "presence", True, False)
                continue
            await self._compare_manifest(str(platform), desc0, desc1)
        for platform in remaining:
            self.conflict(f"platform {platform}", "presence", False, True)

    async def _select_manifests(
        self, index: int, desc: Descriptor
    ) -> List[tuple[Platform, Descriptor]]:
        if desc.is_index:
            data = await self.store.read_json(desc.digest)
            selected = []
            for entry in data.get("manifests", []):
                child = Descriptor.from_dict(entry)
                if self.matcher.match(child.platform):
                    selected.append((Platform.from_dict(child.platform), child))
        elif desc.media_type in MANIFEST_MEDIA_TYPES:
            platform = desc.platform
            if platform is None:
                manifest = await self.store.read_json(desc.digest)
                platform = await self.store.read_json(manifest["config"]["digest"])
            selected = []
            if self.matcher.match(platform):
                selected.append((Platform.from_dict(platform), desc))
        else:
            raise ComparisonError(f"input {index}: unsupported media type {desc.media_type!r}")

        if not selected:
            raise UnavailableError(
                f"input {index}: no manifest matches platforms "
                f"{format_platforms(self.matcher.platforms)}"
            )
        return selected

    async def _compare_manifest(self, context: str, desc0: Descriptor, desc1: Descriptor) -> None:
        self.handler.on_compare(context)
        if desc0.digest == desc1.digest:
            return
        manifest0 = await self.store.read_json(desc0.digest)
        manifest1 = await self.store.read_json(desc1.digest)
        self._compare_annotations(
            context, manifest0.get("annotations") or {}, manifest1.get("annotations") or {}
        )

        config0, config1 = manifest0["config"], manifest1["config"]
        if config0["digest"] != config1["digest"]:
            await self._compare_config(
                f"{context} config",
                await self.store.read_json(config0["digest"]),
                await self.store.read_json(config1["digest"]),
            )
        await self._compare_layers(
            context, manifest0.get("layers", []), manifest1.get("layers", [])
        )

    def _filter_annotations(self, annotations: Optional[Mapping[str, str]]) -> Dict[str, str]:
        annotations = dict(annotations or {})
        if self.config.ignore_image_name:
            for key in IMAGE_NAME_ANNOTATIONS:
                annotations.pop(key, None)
        if self.config.ignore_image_timestamps:
            annotations.pop(CREATED_ANNOTATION, None)
        return annotations

    def _compare_annotations(self, context: str, ann0, ann1) -> None:
        ann0, ann1 = self._filter_annotations(ann0), self._filter_annotations(ann1)
        for key in sorted(ann0.keys() | ann1.keys()):
            if ann0.get(key) != ann1.get(key):
                self.conflict(f"{context} annotation {key!r}", "annotation", ann0.get(key), ann1.get(key))

    async def _compare_config(self, context: str, config0: dict, config1: dict) -> None:
        self.handler.on_compare(context)
        for key in _CONFIG_FIELDS:
            if config0.get(key) != config1.get(key):
                self.conflict(f"{context} {key}", "field", config0.get(key), config1.get(key))
        if not self.config.ignore_image_timestamps:
            if config0.get("created") != config1.get("created"):
                self.conflict(f"{context} created", "timestamp", config0.get("created"), config1.get("created"))

        runtime0 = dict(config0.get("config") or {})
        runtime1 = dict(config1.get("config") or {})
        runtime0["Labels"] = self._filter_annotations(runtime0.get("Labels"))
        runtime1["Labels"] = self._filter_annotations(runtime1.get("Labels"))
        for key in sorted(runtime0.keys() | runtime1.keys()):
            if runtime0.get(key) != runtime1.get(key):
                self.conflict(f"{context} {key}", "field", runtime0.get(key), runtime1.get(key))

        if not self.config.ignore_history:
            self._compare_history(context, config0.get("history") or [], config1.get("history") or [])

    def _compare_history(self, context: str, history0: list, history1: list) -> None:
        if len(history0) != len(history1):
            self.conflict(f"{context} history", "length", len(history0), len(history1))
        for i, (entry0, entry1) in enumerate(zip(history0, history1)):
            if self.config.ignore_image_timestamps:
                entry0 = {k: v for k, v in entry0.items() if k != "created"}
                entry1 = {k: v for k, v in entry1.items() if k != "created"}
            if entry0 != entry1:
                self.conflict(f"{context} history {i}", "history", entry0, entry1)

    async def _compare_layers(self, context: str, layers0: list, layers1: list) -> None:
        if len(layers0) != len(layers1) and not self.config.ignore_layer_length_mismatch:
            self.conflict(f"{context} layers", "length", len(layers0), len(layers1))
        for i, (layer0, layer1) in enumerate(zip(layers0, layers1)):
            layer_context = f"{context} layer {i}"
            self.handler.on_compare(layer_context)
            if layer0["digest"] == layer1["digest"]:
                continue
            entries0 = await self._read_layer(layer0["digest"])
            entries1 = await self._read_layer(layer1["digest"])
            compare_entries(layer_context, entries0, entries1, self.config, self.conflict)

    async def _read_layer(self, digest: str):
        size = await self.store.size(digest)
        if size > self.config.max_tar_blob_size:
            raise ComparisonError(
                f"layer {digest} is {size} bytes, exceeding the limit of "
                f"{self.config.max_tar_blob_size} bytes (see --max-scale)"
            )
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, read_entries, str(self.store.blob_path(digest)), self.config.max_tar_entries
        )
