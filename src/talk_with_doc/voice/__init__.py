"""
Server side voice pipeline: audio codec, transcription, persona speech
generation and the per-connection session state machine.
"""
