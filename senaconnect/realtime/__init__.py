"""Realtime infrastructure (Socket.IO, connection registry, dispatch).

This package holds cross-domain realtime primitives so events, posts and
chat can share one socket server.
"""
