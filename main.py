#!/usr/bin/env python3
"""
main.py: quick-start entry point.

Drop images into ``images/`` and run:

    python main.py arrange

Or use the full CLI:

    python -m pixel_blueprint.cli arrange --help
    python -m pixel_blueprint.cli colors my_sprite.png
    python -m pixel_blueprint.cli inspect "0a1b::::3k2f9c"
"""

from pixel_blueprint.cli import app

if __name__ == "__main__":
    app()
