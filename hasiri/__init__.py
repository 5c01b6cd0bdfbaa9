"""Hasiri Store back-office services"""
