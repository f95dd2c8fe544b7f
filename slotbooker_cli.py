#!/usr/bin/env python3
"""
Convenience entry point for running slotbooker directly.

Usage: python slotbooker_cli.py [command] [options]
"""

from slotbooker.cli.app import app

if __name__ == "__main__":
    app()
