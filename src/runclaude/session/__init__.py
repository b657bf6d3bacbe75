# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Session orchestration: mount rules, image resolution, container lifecycle."""

from .service import SessionService

__all__ = ["SessionService"]
