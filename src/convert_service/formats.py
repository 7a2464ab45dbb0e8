"""Format labels and the name mappings applied at the point of use.

Task records keep formats exactly as submitted; every helper here
lower-cases and strips a leading separator before mapping.
"""

from pathlib import Path

SUPPORTED_SOURCE_FORMATS: tuple[str, ...] = (
    "markdown",
    "html",
    "docx",
    "doc",
    "odt",
    "rtf",
    "epub",
    "latex",
    "rst",
    "txt",
    "pdf",
    "pptx",
    "ppt",
    "xlsx",
    "xls",
)

SUPPORTED_TARGET_FORMATS: tuple[str, ...] = (
    "markdown",
    "html",
    "docx",
    "odt",
    "rtf",
    "epub",
    "latex",
    "rst",
    "plain",
)

# Formats the primary converter cannot read, mapped to what the office
# converter should produce for them.
LEGACY_FORMATS: dict[str, str] = {
    "doc": "docx",
    "ppt": "pptx",
    "xls": "xlsx",
}

_PANDOC_ALIASES = {
    "markdown": "markdown",
    "md": "markdown",
    "text": "plain",
    "txt": "plain",
    "plain": "plain",
    "htm": "html",
}

_EXTENSION_ALIASES = {
    "markdown": "md",
    "md": "md",
    "text": "txt",
    "txt": "txt",
    "plain": "txt",
}


def normalize_format_label(fmt: str | None) -> str:
    return (fmt or "").strip().lstrip(".").lower()


def pandoc_format(fmt: str) -> str:
    """Map a declared format onto the reader/writer name pandoc expects."""
    label = normalize_format_label(fmt)
    return _PANDOC_ALIASES.get(label, label)


def output_extension(fmt: str) -> str:
    label = normalize_format_label(fmt)
    return _EXTENSION_ALIASES.get(label, label)


def extension_hint(source_path: str | Path, declared_format: str | None = None) -> str | None:
    """Return the `--extension` hint for the markdown shortcut tool.

    The declared format wins; otherwise the file suffix is used. Returns
    None when neither yields anything.
    """
    declared = normalize_format_label(declared_format)
    if declared:
        return declared
    suffix = normalize_format_label(Path(source_path).suffix)
    return suffix or None


def legacy_target(fmt: str) -> str | None:
    return LEGACY_FORMATS.get(normalize_format_label(fmt))


def build_output_filename(source_filename: str, task_id: str, target_format: str) -> str:
    stem = Path(source_filename).stem
    return f"{stem}-{task_id}.{output_extension(target_format)}"
