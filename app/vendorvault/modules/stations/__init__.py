"""
Station registry.

The authoritative source for a station's identity, owning manager and declared
platform count. Layout saves read it fresh on every attempt.
"""
