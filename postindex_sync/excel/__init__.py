"""Workbook reading."""
