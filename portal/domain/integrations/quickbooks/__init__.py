"""QuickBooks integration - Accounting and invoicing"""
