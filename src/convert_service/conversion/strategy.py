from enum import Enum

from convert_service.config import RunMode
from convert_service.formats import pandoc_format


class ConversionStrategy(str, Enum):
    SIMULATE = "simulate"
    SHORTCUT = "shortcut"
    PANDOC = "pandoc"


def resolve_strategy(run_mode: RunMode, target_format: str, *, shortcut_enabled: bool = False) -> ConversionStrategy:
    """Pick the execution path for a task.

    Test mode always simulates. The markdown shortcut is off unless
    `shortcut_enabled` is set, in which case it handles markdown targets.
    """
    if run_mode is RunMode.TEST:
        return ConversionStrategy.SIMULATE
    if shortcut_enabled and pandoc_format(target_format) == "markdown":
        return ConversionStrategy.SHORTCUT
    return ConversionStrategy.PANDOC
