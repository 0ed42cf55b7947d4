#!/usr/bin/env python3
"""
Standalone pipeline worker.

Claims OCR, PARSING, VALIDATION and EXPORT jobs until SIGINT/SIGTERM,
then finishes in-flight jobs within JOB_SHUTDOWN_TIMEOUT_S.

Usage:
    python scripts/run_worker.py
"""

from docuflow.v1.infra.jobs.worker import main

if __name__ == "__main__":
    main()
