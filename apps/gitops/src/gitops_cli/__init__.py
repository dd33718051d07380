"""
gitops command line application.
"""
