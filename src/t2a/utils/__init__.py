"""
Utility Modules for t2a.

    - audio.py: WAV header inspection (soundfile)
    - timeit.py: Performance measurement utilities
"""
