"""
Core infrastructure: configuration, logging, errors, persistence, the chat
completion transport and audio I/O.
"""
