"""
VoteBeats ranking service - ranked-choice song queue for live events
"""
__version__ = "1.0.0"
