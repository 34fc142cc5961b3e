"""Console entrypoint bridging to :mod:`opsync.cli`."""

from __future__ import annotations

import sys
from typing import Optional

from .cli import main as cli_main


def main(argv: Optional[list[str]] = None) -> int:
    """Delegate execution to :func:`opsync.cli.main`."""

    return cli_main(argv)


if __name__ == "__main__":
    sys.exit(main())
