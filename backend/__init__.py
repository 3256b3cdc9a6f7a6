"""Typhoon Tracker backend"""
