"""
Audio production components.

    - synthesizer.py: Speech engine adapter (gTTS) and factory
    - chunker.py: Text splitting for per-call engine limits
    - transcoder.py: ffmpeg / ffprobe adapter
    - artifacts.py: Sequential index and per-request temporary files
    - storage.py: Persisted audio store and housekeeping sweeper
"""
