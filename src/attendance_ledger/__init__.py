"""Attendance ledger package.

Organized by feature modules (attendance, analytics, roster, sync) with a thin
Flask controller layer over plain service/store classes.
"""
