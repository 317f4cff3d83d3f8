"""
Station layout editor: tracks, platforms, shop slots and infrastructure for a
station, plus the save pipeline that validates, normalizes and persists them.
"""
