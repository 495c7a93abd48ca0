"""
Warehouse Sync: keeps a multi-tenant warehouse datastore in sync with WooCommerce stores.
"""
