"""
Utility helpers shared by the web application (caching, persistence helpers).
"""
