#!/usr/bin/env python3
"""
Launcher script for FileCrypter.
Run this script with the same arguments as the filecrypter command.
"""

import sys
import os

# Add the current directory to Python path so we can import filecrypter
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

# Import and run the main function
from filecrypter.main import main

if __name__ == "__main__":
    sys.exit(main())
