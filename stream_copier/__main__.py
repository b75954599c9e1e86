#!/usr/bin/env python3
"""
Main execution module for the stream copy tool
"""

from stream_copier.cli.commands import main

if __name__ == "__main__":
    main()
