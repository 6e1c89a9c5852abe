"""Allow ``python -m toolsleuth``."""

from toolsleuth.main import main

main()
