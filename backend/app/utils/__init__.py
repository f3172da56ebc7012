"""
Utility functions for LedgerCore.

This package contains:
- decimal_utils: Column precision, truncation and Decimal parsing
- datetime_utils: UTC timestamps and ISO date parsing
- validation_utils: Case-insensitive enum parsing
"""
