"""
Web API for the storefront and admin dashboard.
"""
