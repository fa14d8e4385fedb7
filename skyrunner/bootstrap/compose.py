"""Bootstrap script composition.

Core types and composition functions for the declarative bootstrap DSL.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Final

from ..constants import USER_DATA_LOG

# =============================================================================
# Core Types
# =============================================================================

type Op = str | Callable[[], str] | list[Op]
"""Operation type: either a literal string or a function returning a string."""


def resolve(op: Op | None) -> str:
    """Resolve an operation to its string representation."""
    match op:
        case str(op):
            return op
        case list(op):
            return "\n".join(resolve(o) for o in op)
        case None:
            return ""
        case _:
            return op()


# =============================================================================
# Header
# =============================================================================

# User data runs as root on first boot; everything is mirrored to a log
# file, syslog and the serial console.
HEADER: Final = f"""#!/bin/bash
exec > >(tee {USER_DATA_LOG}|logger -t user-data -s 2>/dev/console) 2>&1
"""


# =============================================================================
# Composition
# =============================================================================


def bootstrap(*ops: Op | None, header: str = HEADER) -> str:
    """Compose operations into a complete bootstrap script.

    Args:
        *ops: Operations to compose. None entries are skipped, which keeps
            optional steps inline at the call site.
        header: Script preamble. Defaults to the logging bash header.

    Returns:
        Complete shell script string.

    Example:
        >>> bootstrap(cd("/opt/runner"), "./run.sh", header="#!/bin/bash\\n")
        '#!/bin/bash\\ncd /opt/runner\\n./run.sh'
    """
    commands = [resolve(op) for op in ops if op is not None]
    return header + "\n".join(c for c in commands if c)
