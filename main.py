#!/usr/bin/env python3
"""
Development launcher for the WireGuard VPN agent.

    SERVER_ID=my-server BACKEND_URL=http://backend:5000 python main.py
"""

from wg_agent.main import app, run  # noqa: F401

if __name__ == "__main__":
    run()
