#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

Uses development payment mode unless PAYMENT_MODE is already set, so local
bookings never reach the real gateway.
"""
import os

os.environ.setdefault("PAYMENT_MODE", "development")

import uvicorn

if __name__ == "__main__":
    print("Starting StudySphere API in development mode...")
    print("Access at: http://localhost:8000")
    print("API Docs: http://localhost:8000/docs")

    uvicorn.run("studysphere.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
