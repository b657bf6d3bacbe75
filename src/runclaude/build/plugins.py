# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Host plugin enablement snapshot, read once when the image is built."""

from __future__ import annotations

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def read_enabled_plugins(config_dir: Path) -> list[str]:
    """Return plugin keys marked ``true`` in ``<config_dir>/settings.json``.

    A missing or unreadable settings file yields no plugins; the image is
    still buildable without them.
    """
    settings = config_dir / "settings.json"
    if not settings.is_file():
        return []

    try:
        data = json.loads(settings.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.debug("Ignoring unreadable %s: %s", settings, e)
        return []

    enabled = data.get("enabledPlugins") if isinstance(data, dict) else None
    if not isinstance(enabled, dict):
        return []
    return [key for key, value in enabled.items() if value is True]
