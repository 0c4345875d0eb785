#!/usr/bin/env python
"""CLI entry point for tile voxelizer."""

from tile_voxelizer.pipeline import main

if __name__ == "__main__":
    main()
