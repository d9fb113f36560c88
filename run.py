#!/usr/bin/env python3
"""Development runner"""
import os
from backy.cli import main

if __name__ == '__main__':
    # Use development config for local testing
    os.environ.setdefault('BACKY_ENV', 'development')
    main()
