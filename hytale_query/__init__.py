"""
Hytale server status queries over Nitrado Query (HTTPS/JSON) and HyQuery (UDP)
"""

__version__ = '1.0.0'
