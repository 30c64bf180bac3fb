"""Allow ``python -m covertool``."""

from covertool.cli import main

main()
