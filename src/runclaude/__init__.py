# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""run-claude: persistent, per-workspace Claude Code containers."""

__version__ = "1.0.0"
