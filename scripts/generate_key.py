#!/usr/bin/env python3
"""
Print an ENCRYPTION_KEY line for encrypting store credentials.
Usage: python scripts/generate_key.py
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from price_sync.db import generate_encryption_key


def main():
    print("\nAdd this to your .env file (keep it; stored credentials need it):\n")
    print(f"ENCRYPTION_KEY={generate_encryption_key()}")
    print()


if __name__ == "__main__":
    main()
