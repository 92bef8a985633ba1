"""
Jewelry CRM - storefront orders, inventory and catalog service
"""
__version__ = "1.0.0"
