"""
Command-line replay of recorded or synthetic matches (fake_match).
"""
