#!/usr/bin/env python3
"""
PhotoSweep: find the photos most worth deleting using on-device image analysis
"""

from photosweep.cli import main


if __name__ == "__main__":
    main()
