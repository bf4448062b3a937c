"""
Command-line interface for StealthPay Core.
"""
