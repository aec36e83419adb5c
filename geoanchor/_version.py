"""
Exposes the version of geoanchor
"""
__version__ = 'v0.1.0'
