#!/usr/bin/env python3
"""
Label Station - keeps USB label printers, CUPS queues and the local printer
table in agreement on a check-in station, and serves a small diagnostics API.
"""

from label_station.__main__ import main

if __name__ == "__main__":
    main()
