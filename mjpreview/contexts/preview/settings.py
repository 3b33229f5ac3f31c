"""
Preview settings.

Settings come from a YAML file (path from the PREVIEW_SETTINGS_PATH env
variable unless given explicitly) with three sections:

    preview:
      auto_preview: true        # bind documents to the preview as they are opened
      update_when_typing: true  # re-render on every edit, not only on save
      preserve_focus: true      # keep focus in the editor after showing the preview
    render:
      minify: false
      beautify: true
      locale: de
      locale_dir: locales       # gettext catalogs, relative to the settings file
    context_defaults:
      UNSUB_LINK: "[[UNSUB_LINK_DE]]"

Every key is optional. Missing file -> built-in defaults.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from mjpreview.contexts.rendering.results import DEFAULT_LOCALE

load_dotenv()

SECTION_KEYS = {
    "preview": ("auto_preview", "update_when_typing", "preserve_focus"),
    "render": ("minify", "beautify", "locale", "locale_dir"),
}
BOOLEAN_KEYS = {"auto_preview", "update_when_typing", "preserve_focus", "minify", "beautify"}


@dataclass
class PreviewSettings:
    """
    Options consumed by the preview core.

    Attributes:
        auto_preview: Bind MJML documents on open/focus once the preview is showing
        update_when_typing: Invalidate on every content change instead of only on save
        preserve_focus: Hint passed to the host after a preview is displayed
        minify: Minify compiled HTML
        beautify: Beautify compiled HTML
        locale: Target locale of the localization stage
        locale_dir: Directory with gettext catalogs (None = no translations)
        context_defaults: Variables available to every template
    """

    auto_preview: bool = True
    update_when_typing: bool = True
    preserve_focus: bool = True
    minify: bool = False
    beautify: bool = True
    locale: str = DEFAULT_LOCALE
    locale_dir: Optional[Path] = None
    context_defaults: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if isinstance(self.locale_dir, str):
            self.locale_dir = Path(self.locale_dir) if self.locale_dir else None


def _default_settings_path() -> Optional[Path]:
    value = os.getenv("PREVIEW_SETTINGS_PATH")
    return Path(value) if value else None


def _default_locale_dir() -> Optional[Path]:
    value = os.getenv("MJML_LOCALE_DIR")
    return Path(value) if value else None


def settings_from_dict(data: Dict[str, Any], base_dir: Optional[Path] = None) -> PreviewSettings:
    """
    Build PreviewSettings from a parsed settings mapping.

    Args:
        data: Mapping with optional "preview", "render" and "context_defaults" sections
        base_dir: Directory that relative locale_dir values are resolved against

    Raises:
        ValueError: On unknown sections or keys, or non-boolean flags
    """
    allowed_sections = list(SECTION_KEYS) + ["context_defaults"]
    unknown = [name for name in data if name not in allowed_sections]
    if unknown:
        raise ValueError(f"Unknown settings section(s) {unknown}. Available sections: {allowed_sections}")

    values: Dict[str, Any] = {}
    for section, keys in SECTION_KEYS.items():
        section_data = data.get(section) or {}
        for key, value in section_data.items():
            if key not in keys:
                raise ValueError(f"Unknown setting '{section}.{key}'. Available settings: {list(keys)}")
            if key in BOOLEAN_KEYS and not isinstance(value, bool):
                raise ValueError(f"Setting '{section}.{key}' must be true or false, got {value!r}")
            values[key] = value

    context_defaults = data.get("context_defaults") or {}
    if not isinstance(context_defaults, dict):
        raise ValueError("Section 'context_defaults' must be a mapping")
    values["context_defaults"] = dict(context_defaults)

    locale_dir = values.get("locale_dir")
    if locale_dir:
        locale_dir = Path(locale_dir)
        if base_dir is not None and not locale_dir.is_absolute():
            locale_dir = base_dir / locale_dir
        values["locale_dir"] = locale_dir
    else:
        values["locale_dir"] = _default_locale_dir()

    return PreviewSettings(**values)


def load_preview_settings(config_path: Optional[Path] = None) -> PreviewSettings:
    """
    Load preview settings from a YAML file.

    Args:
        config_path: Settings file (defaults to PREVIEW_SETTINGS_PATH env variable)

    Returns:
        PreviewSettings. Built-in defaults if no file is configured or it does not exist.

    Raises:
        ValueError: If the file content is invalid
    """
    if config_path is None:
        config_path = _default_settings_path()

    if config_path is None or not Path(config_path).exists():
        return PreviewSettings(locale_dir=_default_locale_dir())

    config_path = Path(config_path)
    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Settings file must contain a mapping: {config_path}")

    return settings_from_dict(data, base_dir=config_path.parent)

