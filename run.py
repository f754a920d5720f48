#!/usr/bin/env python3
"""
mindone - Quick Start Script

Run this script to start the agent relay without installing the package.
"""
import sys
import os

# Add the project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

if __name__ == "__main__":
    from mindone.cli import main

    sys.exit(main())
