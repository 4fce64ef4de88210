"""
Agency Desk - Source Package

Record keeping for a small visa and travel agency: customers and their
visa progress, the income and expense ledger, and the reports derived
from both.

DESIGN PRINCIPLES:
1. Validate before writing, never after
2. Fail early, fail visibly
3. No silent corrections
4. Every change must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Agency Desk Team"
