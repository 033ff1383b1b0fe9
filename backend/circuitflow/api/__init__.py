"""API modules"""
