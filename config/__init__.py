"""
config — environment-driven settings and logging setup.
"""
