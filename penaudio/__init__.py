"""
penaudio - converts source audio files into the pen's Ogg Vorbis format and
keeps the converted files in a persistent cache.
"""

__version__ = "0.3.0"
