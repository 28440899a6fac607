"""Allow ``python -m kstack.cli`` execution; delegates to the archive CLI."""

from kstack.cli.archive import main

main()
