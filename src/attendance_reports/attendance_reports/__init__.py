"""Attendance report acceleration package.

Organized by feature modules (hierarchy, cache, reports) with a thin Flask controller
layer over service and repository layers.
"""
