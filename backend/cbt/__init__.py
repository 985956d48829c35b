"""
CBT portal core: test codes, test delivery and scoring.
"""
