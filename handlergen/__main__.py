"""Entry point: python -m handlergen

Reads schema.json and class metadata, writes Java REST handlers.
"""

from __future__ import annotations

from .cli import main

if __name__ == "__main__":
    main(prog_name="handlergen")
