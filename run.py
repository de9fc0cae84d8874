#!/usr/bin/env python3
"""
Rental Deposit Interest Entry Point

Starts the FastAPI server with the configured host and port.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from deposit_interest.config import get_config
from deposit_interest.api import run_server


if __name__ == "__main__":
    config = get_config()

    print("🏠 Starting Rental Deposit Interest Calculator...")
    print(f"💰 Capital gains tax: {config.tax_rate}")
    print(f"📉 Key rate margin: {config.key_rate_margin} percentage points")
    print(f"🌐 API available at: http://localhost:{config.api_port}")
    print(f"📚 Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(host=config.api_host, port=config.api_port, debug=False)
    except KeyboardInterrupt:
        print("\n👋 Shutting down Rental Deposit Interest Calculator...")
    except Exception as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)
