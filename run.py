#!/usr/bin/env python3
"""Convenience runner for the weekly segment league.

Usage:
    python run.py leaderboard --week 1
"""
import sys

from segment_league.main import main

if __name__ == "__main__":
    sys.exit(main())
