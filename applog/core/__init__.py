"""
Core modules for applog.

This package contains the stream decoding, record formatting and
orchestration logic. Nothing in here knows about HTTP.
"""
