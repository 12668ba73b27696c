"""
Unit Test Layer Configuration

Pure logic only: models, webhook parsing, the saga helper, the Stripe
adapter with a stand-in SDK, configuration and small core helpers.

Usage:
    pytest tests/unit -v
"""
import os
import sys

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))
