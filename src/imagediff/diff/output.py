"""Writing of comparison reports."""

import json
import logging
import os
from typing import Any

import aiofiles
import aiofiles.os

from ..exceptions import ComparisonError
from ..models import Descriptor
from ..options import ComparisonConfig
from .report import ReportNode

logger = logging.getLogger(__name__)


async def _write_json(path: str, data: Any) -> None:
    parent = os.path.dirname(path)
    if parent:
        await aiofiles.os.makedirs(parent, exist_ok=True)
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(json.dumps(data, indent=2) + "\n")


async def write_reports(
    report: ReportNode,
    descriptors: tuple[Descriptor, Descriptor],
    config: ComparisonConfig,
) -> None:
    """Write ``report_file`` and ``report_dir`` outputs when configured.

    Raises:
        ComparisonError: If an output cannot be written
    """
    try:
        if config.report_file:
            await _write_json(config.report_file, report.to_dict())
            logger.info(f"Wrote report file {config.report_file}")
        if config.report_dir:
            await _write_json(os.path.join(config.report_dir, "report.json"), report.to_dict())
            await _write_json(
                os.path.join(config.report_dir, "inputs.json"),
                [desc.to_dict() for desc in descriptors],
            )
            logger.info(f"Wrote report directory {config.report_dir}")
    except OSError as e:
        raise ComparisonError(f"failed to write report: {e}", report) from e
