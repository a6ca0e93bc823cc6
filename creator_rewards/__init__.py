"""Creator rewards back end package.

Having this file ensures the 'creator_rewards' directory is recognized as a
standard Python package during test discovery and installation.
"""

__all__: list[str] = []
