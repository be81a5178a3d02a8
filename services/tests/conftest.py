"""
Top-level test configuration for pgharbor.
"""

import os

from cryptography.fernet import Fernet

# Ensure test-friendly defaults before pgharbor.config is imported
os.environ.setdefault("PGHARBOR_JSON_LOGS", "false")
os.environ.setdefault("PGHARBOR_LOG_LEVEL", "DEBUG")
os.environ.setdefault("PGHARBOR_ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ.setdefault("PGHARBOR_DATABASE_CONFIGURATION_DIR", "/data/pgharbor/databases")
