"""Allow ``python -m foldersync``."""

from .main import main

main()
