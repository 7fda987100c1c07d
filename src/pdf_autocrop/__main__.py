"""
Module entrypoint.

Allows running the tool with `python -m pdf_autocrop`.
"""

from .cli import main


if __name__ == "__main__":
    raise SystemExit(main())
