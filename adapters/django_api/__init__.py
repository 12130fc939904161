"""
MOA Django HTTP adapter.
Thin framework glue over engines.master_orders.services.
"""
