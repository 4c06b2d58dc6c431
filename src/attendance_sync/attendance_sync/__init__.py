"""Attendance verification and synchronization engine.

This package is organized by feature modules (tokens, sessions, attendance,
verification, offline, ...) with a thin Flask controller layer on top of the
service/repository layers.
"""
