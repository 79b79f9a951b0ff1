#!/usr/bin/env python3
"""
WarcraftLogs Parse Tracker - Entry Point

Telegram bot announcing new WarcraftLogs reports and improved parses.
The actual implementation is in the wclbot package.
"""

if __name__ == "__main__":
    from wclbot import main
    main()
