"""Allow ``python -m src.cli`` execution."""

from src.cli.archive import main

main()
