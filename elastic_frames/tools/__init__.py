"""
Tools for elastic-frames.
"""
