# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Scripts that run inside the image.

Each module here is self-contained (stdlib plus httpx, which the image
installs) because it is embedded into the image as a single file.
"""
