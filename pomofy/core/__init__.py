"""Interval engine, tick source and playback snapshot."""
