#!/usr/bin/env python3
"""
Development server runner for the PasteShare web API.
"""

import os

import uvicorn
from dotenv import load_dotenv

if __name__ == "__main__":
    # Settings are read at import time, so .env must be loaded first.
    load_dotenv()

    from pasteshare.web.app.main import app

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))

    print("🚀 Starting PasteShare Web Server...")
    print(f"🔧 API: http://localhost:{port}/api/pastes")
    print(f"❤️  Health check: http://localhost:{port}/health")
    print("\n" + "="*50)

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info"
    )
