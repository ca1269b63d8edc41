#!/usr/bin/env python3
"""
Rex Pose Creator - Main Entry Point

Run with: python -m pose_creator --help
"""

from .cli import main

if __name__ == "__main__":
    main()
