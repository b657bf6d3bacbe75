# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Mount/environment rule pipeline.

Each rule is a step guarded by its own predicate.  Importing this
package registers all steps with the pipeline.
"""

from ...pipeline import Pipeline
from ..contexts import MountContext

mount_pipeline = Pipeline[MountContext]("mounts")

# Import step modules so their decorators register with the pipeline.
from . import environment as _  # noqa: F401, E402
from . import workspace as _  # noqa: F401, E402
from . import host_config as _  # noqa: F401, E402
from . import claude_config as _  # noqa: F401, E402
from . import ssh as _  # noqa: F401, E402
from . import gpg as _  # noqa: F401, E402
from . import integrations as _  # noqa: F401, E402
