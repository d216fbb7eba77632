"""Allow running `python -m specengine`."""

from .client import main

main()
