"""Event handlers notified by the diff engine."""

import logging

logger = logging.getLogger(__name__)


class DefaultEventHandler:
    """Logs every conflict."""

    verbose = False

    def on_compare(self, context: str) -> None:
        pass

    def on_conflict(self, node) -> None:
        logger.warning(node.describe())


class VerboseEventHandler(DefaultEventHandler):
    """Logs every compared context in addition to conflicts."""

    verbose = True

    def on_compare(self, context: str) -> None:
        logger.info(f"Comparing {context}")


DEFAULT_EVENT_HANDLER = DefaultEventHandler()
VERBOSE_EVENT_HANDLER = VerboseEventHandler()
