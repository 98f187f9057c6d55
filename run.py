#!/usr/bin/env python3
"""
CLI entry point for the rental reservation reconciliation pipeline.
"""
from src.main import main

if __name__ == "__main__":
    main()
