"""
Invoicing Modules.

Domain modules that hold state and orchestrate the pure engines:

    billing: GST invoices, payments, late fees and recurring series
"""
